[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "charmlp"
version = "0.1.0"
description = "A small reverse-mode autograd engine and a character-level MLP that learns to generate names"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["autograd", "neural-network", "mlp", "character-level", "language-model", "names"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
charmlp = "charmlp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["charmlp"]

[tool.pytest.ini_options]
addopts = "-ra"
