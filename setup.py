"""
Setup script for exam-session-engine.

The exam session engine is the backend core for timed, randomly assembled
multiple-choice exams. It serves three roles:

1. Blueprint Assembly - Draws an exam's question set once, from a blueprint
2. Session Lifecycle - Timed sessions with autosave and lazy expiry
3. Scoring - Exactly-once scoring at submission

The 'exam-engine' command is the operator entry point; the HTTP API is
served by 'exam-engine serve'.
"""

from setuptools import find_packages, setup

setup(
    name="exam-session-engine",
    version="1.0.0",
    description="Exam session lifecycle engine: blueprint assembly, timed sessions, exactly-once scoring",
    author="Exam Platform",
    packages=find_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "exam-engine=src.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Testing",
    ],
    keywords="exam assessment sessions scoring education",
)
