"""kdiscover.

Discover Kubernetes clusters across cloud backends (EKS, AKS) through pluggable
discovery and identity providers.
"""

__version__ = "0.1.0"
__author__ = "Platform Engineering Team"
__license__ = "Apache-2.0"
