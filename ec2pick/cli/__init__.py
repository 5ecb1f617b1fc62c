"""Command-line surface for ec2pick."""
