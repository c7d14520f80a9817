from setuptools import setup, find_packages

setup(
    name="slidegate",
    version="0.1.0",
    packages=find_packages(include=["slidegate", "slidegate.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "redis>=5.0",
        "fastapi>=0.110",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "fakeredis[lua]>=2.20",
            "httpx>=0.27",
        ],
    },
)
