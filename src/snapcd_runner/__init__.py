"""Worker agent that drives Terraform, OpenTofu and Pulumi on behalf of SnapCD."""

__version__ = "0.1.0"
