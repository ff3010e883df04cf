"""
Cross-app test suite for the Farm To Fork backend.

Test Organization:
- integration/ - end-to-end API scenarios spanning onboarding and orders
- App-specific tests remain in their respective app directories (e.g., farms/tests.py)
"""
