"""Token deployer: generate, deploy, launch and verify a templated token contract"""

__version__ = "0.1.0"
