"""Shared pytest fixtures for the test suite."""

import pytest


@pytest.fixture()
def date_rows():
    return [
        {"month": "2024-01", "requests": 10, "closed": 4},
        {"month": "2024-01", "requests": 5, "closed": 1},
        {"month": "2023-12", "requests": 3, "closed": 3},
    ]


@pytest.fixture()
def department_rows():
    return [
        {"department": "Finance", "request_status": "종료", "request_date": "2024-01", "count": 4},
        {"department": "Finance", "request_status": "요청", "request_date": "2024-01-15", "count": 2},
        {"department": "IT", "request_status": "종료", "request_date": "2024-01", "count": 3},
        {"department": "IT", "request_status": "보류", "request_date": "2024-01", "count": 1},
        {"department": "HR", "request_status": "요청", "request_date": "2023-12", "count": 50},
        {"department": "2024-01", "request_status": "종료", "request_date": "2024-01", "count": 99},
    ]
