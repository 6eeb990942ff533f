from setuptools import setup, find_packages

setup(
    name="reminder-service",
    version="0.1.0",
    packages=find_packages(include=["reminder_service", "reminder_service.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy>=2.0",
        "psycopg2-binary",
        "redis",
        "celery",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "firebase-admin",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
        "httpx",
        "pywebpush",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
