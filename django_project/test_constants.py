"""
Common test constants shared across all test files.
"""

# Test user credentials
TEST_PASSWORD = (
    "testpass123"  # noqa: S105  # nosec B105 - Test password, not a security issue
)

# Push-messaging tokens
TEST_TOKEN_A = "token-device-a"
TEST_TOKEN_B = "token-device-b"
TEST_TOKEN_C = "token-device-c"
