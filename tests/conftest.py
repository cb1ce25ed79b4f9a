"""Pytest configuration shared across test modules."""

import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "linkaudit_tool.settings")
os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_DEBUG", "true")

django.setup()
