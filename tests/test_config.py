from card_gateway.config import FORM_FIELDS, GatewaySettings, allow_list, load_settings


def test_defaults_follow_form_fields():
    settings = GatewaySettings.from_options({})

    assert settings.enabled is True
    assert settings.title == "Credit Card Payment"
    assert settings.charge_type == "capture"
    assert settings.additional_fields is False
    assert settings.saved_cards is True
    assert settings.testmode is False


def test_checkbox_options_are_yes_no():
    settings = GatewaySettings.from_options({"enabled": "no", "saved_cards": "no", "testmode": "yes"})

    assert settings.enabled is False
    assert settings.saved_cards is False
    assert settings.testmode is True
    assert settings.option_values()["enabled"] == "no"


def test_keys_follow_test_mode():
    raw = {
        "test_secret_key": "sk_test", "test_publishable_key": "pk_test",
        "live_secret_key": "sk_live", "live_publishable_key": "pk_live",
    }

    live = GatewaySettings.from_options(raw)
    test = GatewaySettings.from_options({**raw, "testmode": "yes"})

    assert (live.secret_key, live.publishable_key) == ("sk_live", "pk_live")
    assert (test.secret_key, test.publishable_key) == ("sk_test", "pk_test")


def test_charge_type_select_options():
    assert set(FORM_FIELDS["charge_type"]["options"]) == {"capture", "authorize"}
    assert GatewaySettings.from_options({"charge_type": "authorize"}).capture is False


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv("STORE4_CHARGE_TYPE", "authorize")
    monkeypatch.setenv("STORE4_TESTMODE", "yes")
    monkeypatch.setenv("STORE4_TEST_SECRET_KEY", "sk_test_env")
    monkeypatch.setenv("STORE4_ALLOWED_USER_IDS", "1, 7")
    monkeypatch.setenv("SITE_URL", "https://shop.example/")

    settings = load_settings()

    assert settings.charge_type == "authorize"
    assert settings.secret_key == "sk_test_env"
    assert settings.allowed_user_ids == [1, 7]
    assert settings.site_url == "https://shop.example"


def test_allow_list_predicate():
    is_allowed = allow_list([1, 7])

    assert is_allowed(1)
    assert is_allowed(7)
    assert not is_allowed(2)
    assert not is_allowed(None)
