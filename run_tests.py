#!/usr/bin/env python
"""
Run the test suites of every Med-Infinite app with Django's test runner
Usage: python run_tests.py [app ...]
"""
import os
import sys

import django
from django.conf import settings
from django.test.utils import get_runner

APPS = [
    'medinfinite.core',
    'medinfinite.branches',
    'medinfinite.staff',
    'medinfinite.clients',
    'medinfinite.careplans',
    'medinfinite.bookings',
    'medinfinite.visits',
    'medinfinite.messaging',
    'medinfinite.billing',
    'medinfinite.notifications',
    'medinfinite.reports',
]

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'medinfinite.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    labels = [f'medinfinite.{name}' if '.' not in name else name for name in sys.argv[1:]] or APPS
    failures = test_runner.run_tests(labels)
    sys.exit(bool(failures))
