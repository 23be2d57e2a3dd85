"""
Progression Engine Test Suite
=============================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no database)
- tests/integration/   : Integration tests on real SQLite files, plus a
                         PostgreSQL suite through testcontainers

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test pure rules and policies
- Integration tests: Slower, test real store interactions and races
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
