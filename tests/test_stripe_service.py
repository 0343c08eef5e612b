import stripe

from card_gateway.stripe_service import (
    CardResult,
    ChargeFailure,
    ChargeRequest,
    ChargeSuccess,
    CustomerResult,
    RefundSuccess,
    StripeProcessor,
    translate_error,
)


def charge_request(**overrides):
    params = dict(
        amount=2500,
        currency="usd",
        source="tok_valid",
        capture=True,
        description="Example Shop - Order 1001",
        metadata={"order_id": "1001"},
    )
    params.update(overrides)
    return ChargeRequest(**params)


def test_charge_success_reads_expanded_fee(mocker):
    create = mocker.patch("stripe.Charge.create", return_value=stripe.Charge.construct_from({
        "id": "ch_123",
        "object": "charge",
        "captured": True,
        "balance_transaction": {"id": "txn_1", "object": "balance_transaction", "fee": 59},
    }, "sk_test_123"))

    result = StripeProcessor("sk_test_123").charge(charge_request())

    assert result == ChargeSuccess(transaction_id="ch_123", fee=59)
    create.assert_called_once_with(
        api_key="sk_test_123",
        amount=2500,
        currency="usd",
        source="tok_valid",
        capture=True,
        description="Example Shop - Order 1001",
        metadata={"order_id": "1001"},
        expand=["balance_transaction"],
    )


def test_charge_without_balance_transaction_has_no_fee(mocker):
    mocker.patch("stripe.Charge.create", return_value=stripe.Charge.construct_from({
        "id": "ch_auth", "object": "charge", "captured": False, "balance_transaction": None,
    }, "sk_test_123"))

    result = StripeProcessor("sk_test_123").charge(charge_request(capture=False))

    assert result == ChargeSuccess(transaction_id="ch_auth", fee=None)


def test_charge_with_unexpanded_balance_transaction_has_no_fee(mocker):
    mocker.patch("stripe.Charge.create", return_value=stripe.Charge.construct_from({
        "id": "ch_2", "object": "charge", "balance_transaction": "txn_2",
    }, "sk_test_123"))

    result = StripeProcessor("sk_test_123").charge(charge_request())

    assert result.fee is None


def test_charge_for_customer_passes_customer(mocker):
    create = mocker.patch("stripe.Charge.create", return_value=stripe.Charge.construct_from(
        {"id": "ch_cus", "object": "charge"}, "sk_test_123"))

    StripeProcessor("sk_test_123").charge(charge_request(source="card_1", customer="cus_1"))

    assert create.call_args.kwargs["customer"] == "cus_1"
    assert create.call_args.kwargs["source"] == "card_1"


def test_declined_card_becomes_failure(mocker):
    mocker.patch("stripe.Charge.create",
                 side_effect=stripe.CardError("Your card was declined.", None, "card_declined"))

    result = StripeProcessor("sk_test_123").charge(charge_request(source="tok_declined"))

    assert isinstance(result, ChargeFailure)
    assert result.category == "card_declined"
    assert result.message == "Your card was declined. (card_declined)"


def test_error_without_code_uses_error_class():
    failure = translate_error(stripe.AuthenticationError("Invalid API Key provided"))

    assert failure.category == "authentication_error"
    assert "Invalid API Key provided" in failure.message


def test_connection_error_category():
    failure = translate_error(stripe.APIConnectionError("Network error"))

    assert failure.category == "api_connection_error"


def test_add_card_returns_card_details(mocker):
    create_source = mocker.patch("stripe.Customer.create_source", return_value=stripe.Card.construct_from({
        "id": "card_1", "object": "card", "brand": "Visa", "last4": "4242", "exp_month": 12, "exp_year": 2030,
    }, "sk_test_123"))

    result = StripeProcessor("sk_test_123").add_card("cus_1", "tok_valid")

    assert result == CardResult("card_1", "Visa", "4242", 12, 2030)
    create_source.assert_called_once_with("cus_1", source="tok_valid", api_key="sk_test_123")


def test_refund_partial_amount(mocker):
    create = mocker.patch("stripe.Refund.create", return_value=stripe.Refund.construct_from(
        {"id": "re_1", "object": "refund", "amount": 1000}, "sk_test_123"))

    result = StripeProcessor("sk_test_123").refund("ch_123", 1000, "customer request")

    assert result == RefundSuccess("re_1", 1000)
    create.assert_called_once_with(
        api_key="sk_test_123", charge="ch_123", amount=1000,
        metadata={"reason": "customer request"},
    )


def test_create_customer_returns_id(mocker):
    create = mocker.patch("stripe.Customer.create", return_value=stripe.Customer.construct_from(
        {"id": "cus_1", "object": "customer"}, "sk_test_123"))

    result = StripeProcessor("sk_test_123").create_customer("ada@example.com", "Customer: Ada Lovelace")

    assert result == CustomerResult("cus_1")
    create.assert_called_once_with(
        email="ada@example.com", description="Customer: Ada Lovelace", api_key="sk_test_123")
