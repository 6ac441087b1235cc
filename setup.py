# setup.py
from setuptools import setup, find_packages

setup(
    name="rdma_shuffle",
    version="0.1.0",
    description="RDMA shuffle manager configuration: host version gate and typed tunable resolution",
    license="Apache-2.0",
    python_requires=">=3.8",
    install_requires=[
        "hydra-core>=1.1.0",
        "omegaconf>=2.1.0",
        "pytz",
    ],
    extras_require={
        "test": [
            "pytest",
        ]
    },
    packages=find_packages(include=["rdma_shuffle", "rdma_shuffle.*"]),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "rdma-shuffle-conf = rdma_shuffle.rdma_shuffle_main:main"
        ]
    },
)
