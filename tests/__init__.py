"""
Test suite for the Menu Upload Service.

Run all tests: pytest
Run with coverage: pytest --cov=. --cov-report=html
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_menu_import_service.py -v
"""
