from pathlib import Path

from setuptools import find_namespace_packages, setup

# Load packages from requirements.txt
BASE_DIR = Path(__file__).parent
with open(Path(BASE_DIR, "requirements.txt")) as file:
    required_packages = [
        ln.strip() for ln in file.readlines() if ln.strip() and not ln.startswith("#")
    ]

# Define our package
setup(
    name="studybuddy",
    version="0.1.0",
    description="Adaptive tutoring engine with live sessions, difficulty adaptation and progression tracking",
    python_requires=">=3.11",
    packages=find_namespace_packages(include=["studybuddy", "studybuddy.*"]),
    package_data={"studybuddy": ["schemas/*.json"]},
    install_requires=required_packages,
    extras_require={
        "test": ["pytest>=7.0", "pytest-asyncio>=0.23"],
    },
)
