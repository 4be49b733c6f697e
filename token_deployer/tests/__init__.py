"""
Token Deployer Tests Package

Unit tests run without network access; web3, solc and the explorer API are
mocked:

   pytest token_deployer/tests/ -v
"""
