"""CredGuard command-line interface.

Thin typer driver over the verification and issuance orchestrators.
Output is JSON by default so results can be piped into other tools.
"""
