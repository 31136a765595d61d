"""hospital_api: Hospital management REST API with input and request guards."""

from .version import get_package_version

__version__ = get_package_version()
__author__ = "hospital_api contributors"
__description__ = "Hospital management REST API with input and request guards"

__all__ = ["__version__"]
