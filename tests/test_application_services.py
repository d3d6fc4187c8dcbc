import unittest

from application.flow import (
    DISPATCH_FAILED_MESSAGE,
    EMAIL_EMPTY_MESSAGE,
    EMAIL_INVALID_MESSAGE,
    INVALID_CATEGORY_MESSAGE,
    OTP_EMPTY_MESSAGE,
    OTP_MISMATCH_MESSAGE,
    OTP_UNREADABLE_MESSAGE,
    PROVISIONING_FAILED_MESSAGE,
    OnboardingFlow,
)
from application.services import (
    DispatchFailure,
    InvalidEmailReason,
    ProvisionFailure,
    VerifyFailure,
    artifact_name_for,
    dispatch_otp,
    load_session_preferences,
    provision_profile,
    sanitize_email,
    validate_email,
    verify_otp,
)
from domain.errors import (
    ChannelError,
    ExternalProcessError,
    MismatchError,
    PreferenceWriteError,
    ProfileWriteError,
    ValidationError,
)
from domain.models import CreditScore, SessionPreferences, Stage
from domain.repositories import (
    OtpChannel,
    OtpDispatcher,
    PreferenceRepository,
    ProfileRepository,
)


class InMemoryOtpChannel(OtpChannel):
    def __init__(self, code=None):
        self.code = code
        self.fail_on_clear = False
        self.clear_calls = 0

    def read(self) -> str:
        if not self.code:
            raise ChannelError("no challenge outstanding")
        return self.code

    def write(self, code: str) -> None:
        self.code = code

    def clear(self) -> None:
        self.clear_calls += 1
        if self.fail_on_clear:
            raise ChannelError("disk is read-only")
        self.code = None


class FakeOtpDispatcher(OtpDispatcher):
    """Writes a fixed code into the channel, like the delivery script would."""

    def __init__(self, channel: InMemoryOtpChannel, code: str = "123456"):
        self.channel = channel
        self.code = code
        self.exit_code = 0
        self.started = True
        self.sent_to = []

    def dispatch(self, email: str) -> None:
        if not self.started:
            raise ExternalProcessError("python not found")
        if self.exit_code != 0:
            raise ExternalProcessError(
                "delivery failed", exit_code=self.exit_code, stderr="smtp down"
            )
        self.sent_to.append(email)
        self.channel.write(self.code)


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self, templates=None):
        self.templates = dict(templates or {})
        self.artifacts = {}
        self.fail_writes = False

    def template_exists(self, template_name: str) -> bool:
        return template_name in self.templates

    def copy_template(self, template_name: str, artifact_name: str) -> str:
        if self.fail_writes:
            raise ProfileWriteError("disk full")
        self.artifacts[artifact_name] = self.templates[template_name]
        return f"UserData/{artifact_name}"


class InMemoryPreferenceRepository(PreferenceRepository):
    def __init__(self):
        self.values = {}
        self.fail_writes = False

    def get(self, key: str):
        return self.values.get(key)

    def set_values(self, values) -> None:
        if self.fail_writes:
            raise PreferenceWriteError("database is locked")
        self.values.update(values)


ALL_TEMPLATES = {
    "bad_spending.json": '{"spending": "bad"}',
    "average_spending.json": '{"spending": "average"}',
    "excellent_spending.json": '{"spending": "excellent"}',
}


class EmailValidationTests(unittest.TestCase):
    def test_empty_email_is_rejected_as_empty(self):
        for raw in ("", None):
            result = validate_email(raw)
            self.assertFalse(result.success)
            self.assertEqual(result.reason, InvalidEmailReason.EMPTY)

    def test_malformed_emails_are_rejected(self):
        for raw in (
            "plainaddress",
            "user@@example.com",
            "@example.com",
            "user@",
            "user name@example.com",
            "Alice <alice@example.com>",
            " user@example.com ",
        ):
            with self.subTest(raw=raw):
                result = validate_email(raw)
                self.assertFalse(result.success)
                self.assertEqual(result.reason, InvalidEmailReason.MALFORMED_FORMAT)
                self.assertIsInstance(result.error, ValidationError)
                self.assertIsNone(result.email)

    def test_valid_emails_are_returned_unchanged(self):
        for raw in ("user@example.com", "a@b.com", "x.y@z.io", "Alice.Smith@Example.com"):
            with self.subTest(raw=raw):
                result = validate_email(raw)
                self.assertTrue(result.success)
                self.assertEqual(result.email, raw)


    def test_special_use_and_dotless_domains_are_rejected(self):
        for raw in ("bob@corp.local", "qa@example.test", "dev@localhost"):
            with self.subTest(raw=raw):
                result = validate_email(raw)
                self.assertFalse(result.success)
                self.assertEqual(result.reason, InvalidEmailReason.MALFORMED_FORMAT)


class OtpCoordinatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.channel = InMemoryOtpChannel()
        self.dispatcher = FakeOtpDispatcher(self.channel, code="482913")

    def test_dispatch_writes_challenge(self):
        result = dispatch_otp("user@example.com", self.dispatcher)
        self.assertTrue(result.success)
        self.assertEqual(self.channel.code, "482913")
        self.assertEqual(self.dispatcher.sent_to, ["user@example.com"])

    def test_dispatch_reports_non_zero_exit(self):
        self.dispatcher.exit_code = 1
        result = dispatch_otp("user@example.com", self.dispatcher)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, DispatchFailure.NON_ZERO_EXIT)
        self.assertEqual(result.error.stderr, "smtp down")

    def test_dispatch_reports_process_not_started(self):
        self.dispatcher.started = False
        result = dispatch_otp("user@example.com", self.dispatcher)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, DispatchFailure.NOT_STARTED)

    def test_verify_accepts_code_after_trimming(self):
        self.channel.write("482913\n")
        result = verify_otp(" 482913 ", self.channel)
        self.assertTrue(result.success)
        # Challenge is consumed.
        self.assertIsNone(self.channel.code)
        with self.assertRaises(ChannelError):
            self.channel.read()

    def test_verify_rejects_wrong_code(self):
        self.channel.write("482913")
        for attempt in ("482914", "48291", "4829130", "abcdef"):
            with self.subTest(attempt=attempt):
                result = verify_otp(attempt, self.channel)
                self.assertFalse(result.success)
                self.assertEqual(result.failure, VerifyFailure.MISMATCH)
                self.assertIsInstance(result.error, MismatchError)
        # A mismatch leaves the challenge in place for another try.
        self.assertEqual(self.channel.code, "482913")

    def test_verify_rejects_empty_input(self):
        self.channel.write("482913")
        result = verify_otp("", self.channel)
        self.assertEqual(result.failure, VerifyFailure.EMPTY_INPUT)
        self.assertEqual(self.channel.clear_calls, 0)

    def test_verify_reports_missing_channel(self):
        result = verify_otp("482913", self.channel)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, VerifyFailure.CHANNEL_UNREADABLE)
        self.assertIsInstance(result.error, ChannelError)

    def test_failed_cleanup_does_not_fail_verification(self):
        self.channel.write("482913")
        self.channel.fail_on_clear = True
        with self.assertLogs("application.services", level="ERROR"):
            result = verify_otp("482913", self.channel)
        self.assertTrue(result.success)


class ProfileProvisionerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.profile_repo = InMemoryProfileRepository(ALL_TEMPLATES)

    def test_sanitize_email(self):
        self.assertEqual(sanitize_email("a@b.com"), "a_at_b_com")
        self.assertEqual(sanitize_email("x.y@z.io"), "x_y_at_z_io")
        self.assertEqual(sanitize_email("a-b+c@d.com"), "a-b+c_at_d_com")
        self.assertEqual(
            artifact_name_for("alice@example.com"), "alice_at_example_com_data.json"
        )

    def test_provision_copies_template_for_category(self):
        result = provision_profile("a@b.com", CreditScore.AVERAGE, self.profile_repo)
        self.assertTrue(result.success)
        self.assertEqual(result.artifact_path, "UserData/a_at_b_com_data.json")
        self.assertEqual(
            self.profile_repo.artifacts["a_at_b_com_data.json"],
            '{"spending": "average"}',
        )

    def test_provision_twice_overwrites_single_artifact(self):
        provision_profile("a@b.com", CreditScore.GOOD, self.profile_repo)
        self.profile_repo.templates["excellent_spending.json"] = '{"v": 2}'
        provision_profile("a@b.com", CreditScore.GOOD, self.profile_repo)
        self.assertEqual(list(self.profile_repo.artifacts), ["a_at_b_com_data.json"])
        self.assertEqual(self.profile_repo.artifacts["a_at_b_com_data.json"], '{"v": 2}')

    def test_provision_rejects_unknown_category(self):
        result = provision_profile("a@b.com", "excellent", self.profile_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, ProvisionFailure.INVALID_CATEGORY)
        self.assertEqual(self.profile_repo.artifacts, {})

    def test_provision_reports_missing_template(self):
        del self.profile_repo.templates["bad_spending.json"]
        result = provision_profile("a@b.com", CreditScore.BAD, self.profile_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, ProvisionFailure.TEMPLATE_MISSING)

    def test_provision_wraps_write_failure(self):
        self.profile_repo.fail_writes = True
        result = provision_profile("a@b.com", CreditScore.BAD, self.profile_repo)
        self.assertFalse(result.success)
        self.assertEqual(result.failure, ProvisionFailure.WRITE_FAILURE)
        self.assertIsInstance(result.error, ProfileWriteError)


class OnboardingFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.channel = InMemoryOtpChannel()
        self.dispatcher = FakeOtpDispatcher(self.channel, code="123456")
        self.profile_repo = InMemoryProfileRepository(ALL_TEMPLATES)
        self.preference_repo = InMemoryPreferenceRepository()
        self.completions = []
        self.flow = OnboardingFlow(
            self.dispatcher,
            self.channel,
            self.profile_repo,
            self.preference_repo,
            on_complete=self.completions.append,
        )

    def test_full_onboarding_flow(self):
        self.assertEqual(self.flow.stage, Stage.EMAIL_ENTRY)

        result = self.flow.submit_email("alice@example.com")
        self.assertTrue(result.success)
        self.assertEqual(result.stage, Stage.OTP_ENTRY)
        self.assertEqual(self.flow.session.email, "alice@example.com")

        result = self.flow.verify_code("123456")
        self.assertTrue(result.success)
        self.assertEqual(result.stage, Stage.CREDIT_SELECT)
        self.assertIsNone(self.channel.code)

        result = self.flow.select_credit_score(CreditScore.GOOD)
        self.assertTrue(result.success)
        self.assertEqual(self.flow.stage, Stage.COMPLETE)
        self.assertEqual(
            self.profile_repo.artifacts["alice_at_example_com_data.json"],
            ALL_TEMPLATES["excellent_spending.json"],
        )

        preferences = load_session_preferences(self.preference_repo)
        self.assertEqual(preferences.email, "alice@example.com")
        self.assertIs(preferences.credit_score, CreditScore.GOOD)
        self.assertEqual(self.preference_repo.values["CurrentUserCreditScore"], "good")
        self.assertEqual(
            self.completions,
            [SessionPreferences(email="alice@example.com", credit_score=CreditScore.GOOD)],
        )

    def test_empty_and_invalid_email_stay_on_email_entry(self):
        result = self.flow.submit_email("")
        self.assertEqual(result.error_message, EMAIL_EMPTY_MESSAGE)
        result = self.flow.submit_email("not-an-email")
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, EMAIL_INVALID_MESSAGE)
        self.assertEqual(self.flow.stage, Stage.EMAIL_ENTRY)
        self.assertEqual(self.dispatcher.sent_to, [])

    def test_dispatch_failure_stays_on_email_entry(self):
        self.dispatcher.exit_code = 1
        result = self.flow.submit_email("alice@example.com")
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, DISPATCH_FAILED_MESSAGE)
        self.assertEqual(self.flow.stage, Stage.EMAIL_ENTRY)
        self.assertIsNone(self.flow.session.email)
        self.assertIsNone(self.channel.code)

        # The user can simply try again.
        self.dispatcher.exit_code = 0
        result = self.flow.submit_email("alice@example.com")
        self.assertTrue(result.success)
        self.assertIsNone(self.flow.session.error_message)

    def test_verify_without_challenge_reports_channel_error(self):
        self.flow.submit_email("alice@example.com")
        self.channel.code = None
        result = self.flow.verify_code("123456")
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, OTP_UNREADABLE_MESSAGE)
        self.assertEqual(self.flow.stage, Stage.OTP_ENTRY)

    def test_wrong_and_empty_codes_stay_on_otp_entry(self):
        self.flow.submit_email("alice@example.com")
        self.assertEqual(self.flow.verify_code("").error_message, OTP_EMPTY_MESSAGE)
        self.assertEqual(
            self.flow.verify_code("654321").error_message, OTP_MISMATCH_MESSAGE
        )
        self.assertEqual(self.flow.stage, Stage.OTP_ENTRY)
        self.assertTrue(self.flow.verify_code(" 123456 ").success)

    def test_invalid_category_stays_on_credit_select(self):
        self.flow.submit_email("alice@example.com")
        self.flow.verify_code("123456")
        result = self.flow.select_credit_score("superb")
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, INVALID_CATEGORY_MESSAGE)
        self.assertEqual(self.flow.stage, Stage.CREDIT_SELECT)

        result = self.flow.select_credit_score("Average")
        self.assertTrue(result.success)
        self.assertIn("alice_at_example_com_data.json", self.profile_repo.artifacts)

    def test_provisioning_failures_stay_on_credit_select(self):
        self.flow.submit_email("alice@example.com")
        self.flow.verify_code("123456")

        del self.profile_repo.templates["bad_spending.json"]
        result = self.flow.select_credit_score(CreditScore.BAD)
        self.assertEqual(result.error_message, PROVISIONING_FAILED_MESSAGE)

        self.preference_repo.fail_writes = True
        result = self.flow.select_credit_score(CreditScore.GOOD)
        self.assertEqual(result.error_message, PROVISIONING_FAILED_MESSAGE)

        self.assertEqual(self.flow.stage, Stage.CREDIT_SELECT)
        self.assertEqual(self.completions, [])

    def test_events_out_of_order_are_rejected(self):
        result = self.flow.verify_code("123456")
        self.assertFalse(result.success)
        self.assertEqual(self.flow.stage, Stage.EMAIL_ENTRY)

        result = self.flow.select_credit_score(CreditScore.GOOD)
        self.assertFalse(result.success)
        self.assertEqual(self.profile_repo.artifacts, {})

    def test_completion_hook_fires_once(self):
        self.flow.submit_email("alice@example.com")
        self.flow.verify_code("123456")
        self.flow.select_credit_score(CreditScore.GOOD)
        result = self.flow.select_credit_score(CreditScore.BAD)
        self.assertFalse(result.success)
        self.assertEqual(len(self.completions), 1)
        self.assertEqual(self.preference_repo.values["CurrentUserCreditScore"], "good")

    def test_failing_completion_hook_is_logged_not_raised(self):
        def broken_hook(preferences):
            raise RuntimeError("send failed")

        flow = OnboardingFlow(
            self.dispatcher,
            self.channel,
            self.profile_repo,
            self.preference_repo,
            on_complete=broken_hook,
        )
        flow.submit_email("alice@example.com")
        flow.verify_code("123456")
        with self.assertLogs("application.flow", level="ERROR"):
            result = flow.select_credit_score(CreditScore.GOOD)
        self.assertTrue(result.success)
        self.assertEqual(flow.stage, Stage.COMPLETE)
        self.assertEqual(self.preference_repo.values["CurrentUserEmail"], "alice@example.com")

    def test_restart_discards_session(self):
        self.flow.submit_email("alice@example.com")
        self.flow.restart()
        self.assertEqual(self.flow.stage, Stage.EMAIL_ENTRY)
        self.assertIsNone(self.flow.session.email)


if __name__ == "__main__":
    unittest.main()
