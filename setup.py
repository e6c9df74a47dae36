"""Setup configuration for sprint_health"""

from setuptools import setup, find_packages

setup(
    name="sprint-health-card",
    version="0.1.0",
    description=(
        "Sprint health card for GitHub repositories: cycle time, review "
        "turnaround and depth, WIP, build success, ship frequency and lead time."
    ),
    author="Sprint Health Card Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "sprint-health-card=sprint_health.main:main",
        ],
    },
)
