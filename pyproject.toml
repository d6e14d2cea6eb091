[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vaultcrd"
version = "0.1.0"
description = "Vault custom resource models, unseal argument generation, listers and an in-memory client"
requires-python = ">=3.10"
dependencies = []
keywords = ["vault", "kubernetes", "operator", "custom-resource", "unseal"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vaultcrd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
