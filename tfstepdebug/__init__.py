"""Interactive, resource-by-resource stepping through Terraform plans."""

__version__ = "0.1.0"