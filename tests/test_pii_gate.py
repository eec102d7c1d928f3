"""Gate G2 tests: the source tree logs no notification text."""

from pathlib import Path

from scripts.gate_security_pii import check_file, check_source

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


class TestSourceTree:
    def test_src_passes_gate(self):
        errors = []
        for pyfile in sorted(SRC_DIR.rglob("*.py")):
            errors.extend(check_file(pyfile))

        assert errors == []


class TestCheckSource:
    def test_print_flagged(self):
        errors = check_source("print('hi')\n")

        assert len(errors) == 1
        assert "print()" in errors[0]

    def test_raw_extra_flagged(self):
        source = 'logger.info("captured", extra={"extra_fields": {"body": body}})\n'

        assert check_source(source)

    def test_safe_extra_passes(self):
        source = 'logger.info("captured", extra={"extra_fields": safe_log_context(body=body)})\n'

        assert check_source(source) == []

    def test_prebuilt_safe_context_passes(self):
        source = (
            "ctx = safe_log_context(record_id=1)\n"
            'logger.info("captured", extra={"extra_fields": ctx})\n'
        )

        assert check_source(source) == []

    def test_fstring_body_flagged(self):
        source = 'logger.warning(f"bad text {record.body}")\n'

        errors = check_source(source)
        assert "body" in errors[0]

    def test_percent_args_flagged(self):
        source = 'logger.info("payer %s", payer_name)\n'

        assert check_source(source)

    def test_ids_in_fstring_allowed(self):
        source = 'logger.info(f"record {record_id} sent")\n'

        assert check_source(source) == []
