from setuptools import setup, find_packages

setup(
    name="p2pchat",
    version="1.0.0",
    description="Peer-to-peer UDP text chat with host/client rendezvous",
    author="Your Name",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "colorama",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "p2pchat = p2pchat.cli:main",
        ],
    },
    python_requires=">=3.10",
)
