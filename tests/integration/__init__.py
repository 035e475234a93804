"""Integration tests for kdiscover.

These tests interact with real cloud accounts and require:
- Valid AWS credentials (EKS)
- Azure service principal environment variables and a test subscription (AKS)

Tests are marked with @pytest.mark.integration and can be run with:
    pytest tests/integration/ -m integration

To skip integration tests:
    pytest -m "not integration"
"""
