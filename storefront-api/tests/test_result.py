from app.services.result import Result


class TestResult:
    def test_success(self):
        result = Result.success(42)
        assert result.ok
        assert result.value == 42
        assert result.error is None

    def test_failure(self):
        result = Result.failure("Unknown product: Mocha", "unknown_product")
        assert not result.ok
        assert result.error == "Unknown product: Mocha"
        assert result.error_code == "unknown_product"

    def test_failure_default_code(self):
        assert Result.failure("boom").error_code == "unknown"

    def test_unwrap_or(self):
        assert Result.success("x").unwrap_or("y") == "x"
        assert Result.failure("boom").unwrap_or("y") == "y"

