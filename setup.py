from __future__ import annotations

from setuptools import find_namespace_packages, setup

setup(
    name="movie-tracker",
    version="0.1.0",
    # Repo convention: backend code lives under `backend/`, imported as
    # top-level packages (`import domain`, `import server`, ...).
    package_dir={"": "backend"},
    packages=find_namespace_packages(
        where="backend",
        include=[
            "application",
            "application.*",
            "config",
            "config.*",
            "domain",
            "domain.*",
            "infrastructure",
            "infrastructure.*",
            "server",
            "server.*",
        ],
    ),
    python_requires=">=3.10",
    install_requires=[
        "pydantic==2.10.6",
        "python-dotenv>=1.0",
        # TMDB catalog client.
        "aiohttp>=3.9",
        # Watchlist store (optional at runtime: in-memory store when POSTGRES_DSN is unset).
        "asyncpg>=0.29",
        "fastapi>=0.115",
        "uvicorn>=0.30",
    ],
    extras_require={
        # fastapi.testclient needs httpx.
        "test": ["pytest>=8.0", "httpx>=0.27"],
    },
)
