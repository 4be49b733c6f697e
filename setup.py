from setuptools import setup, find_packages

setup(
    name="token-deployer",
    version="0.1.0",
    description="Generate, deploy, launch and verify a templated ERC-20 token",
    packages=find_packages(include=["token_deployer", "token_deployer.*"]),
    package_data={
        "token_deployer.contract": ["templates/*.tmpl"],
        "token_deployer.config": ["schemas/*.json"],
    },
    install_requires=[
        "web3>=6.0.0",
        "eth-account>=0.8.0",
        "aiohttp>=3.8.0",
        "pyyaml>=6.0",
        "jsonschema>=4.0.0",
        "py-solc-x>=2.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "token-deployer=token_deployer.main:main",
            "token-deploy=token_deployer.main:deploy_main",
            "token-post-deploy=token_deployer.main:post_deploy_main",
            "token-verify=token_deployer.main:verify_main",
        ],
    },
)
