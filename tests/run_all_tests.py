#!/usr/bin/env python3
"""
Test runner for the trivia bot.
Runs the unit and integration suites and prints a summary report.
"""
import sys
import time
import unittest
from pathlib import Path

# Make `trivia` and `tests` importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

TEST_CATEGORIES = {
    'unit': [
        'tests.test_scoring',
        'tests.test_turns',
        'tests.test_lifelines',
        'tests.test_question_pool',
        'tests.test_timer_lifecycle',
        'tests.test_quiz_engine',
        'tests.test_data_manager',
        'tests.test_config_manager',
        'tests.test_quiz_controller',
        'tests.test_rendering',
        'tests.test_main_config',
    ],
    'discord': ['tests.test_bot_discord_integration'],
    'integration': ['tests.test_integration_comprehensive'],
    'engine': ['tests.test_quiz_engine', 'tests.test_turns', 'tests.test_lifelines', 'tests.test_timer_lifecycle'],
    'data': ['tests.test_data_manager', 'tests.test_question_pool'],
    'config': ['tests.test_config_manager', 'tests.test_main_config'],
    'controller': ['tests.test_quiz_controller'],
}


def load_suite(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
    return suite


def run_test_suite():
    """Run the complete test suite and generate report."""
    print("=" * 70)
    print("Trivia Bot - Test Suite")
    print("=" * 70)

    module_names = []
    for category in ('unit', 'discord', 'integration'):
        module_names.extend(TEST_CATEGORIES[category])
    suite = load_suite(module_names)

    print("\n" + "=" * 70)
    print("Running Tests...")
    print("=" * 70)

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    if failures:
        print("\n" + "-" * 50)
        print("FAILURES:")
        print("-" * 50)
        for test, traceback in result.failures:
            print(f"\n{test}:")
            print(traceback)

    if errors:
        print("\n" + "-" * 50)
        print("ERRORS:")
        print("-" * 50)
        for test, traceback in result.errors:
            print(f"\n{test}:")
            print(traceback)

    return failures == 0 and errors == 0


def run_specific_test_category(category):
    """Run tests for a specific category."""
    if category not in TEST_CATEGORIES:
        print(f"Unknown category: {category}")
        print(f"Available categories: {', '.join(TEST_CATEGORIES.keys())}")
        return False

    print(f"Running {category} tests...")
    suite = load_suite(TEST_CATEGORIES[category])
    result = unittest.TextTestRunner(verbosity=2).run(suite)
    return len(result.failures) == 0 and len(result.errors) == 0


if __name__ == '__main__':
    if len(sys.argv) > 1:
        success = run_specific_test_category(sys.argv[1])
    else:
        success = run_test_suite()

    sys.exit(0 if success else 1)
