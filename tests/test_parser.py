"""
End-to-end parser tests on synthetic receipts in English and Spanish.
"""

from decimal import Decimal

import pytest


ACME_RECEIPT = "Acme Corp\nSubtotal: $100.00\nTax 7%\nTotal: $107.00"

ZERO_TAX_RECEIPT = """\
Super Mercado El Rey
Fecha: 03/11/2024
Pan 20.00
Leche 30.00
ITBMS 0.00
Total: $50.00
"""

DISCREPANCY_RECEIPT = """\
Corner Hardware
Subtotal: $100.00
Tax: $5.00
Total: $110.00
"""

TOTAL_ONLY_RECEIPT = "Total $88.00"

PANAMA_RECEIPT = """\
FARMACIA ARROCHA S.A.
RUC 1234-56-7890 DV 12
Factura No. 0001-00012345
Fecha: 15/01/2024 10:32
Acetaminofen 500mg      3.00
Vitamina C              2.00
Monto gravado ITBMS     5.00
ITBMS 7%                0.35
Total a pagar B/.       5.35
Forma de pago: Tarjeta
Página 1
"""

US_RECEIPT = """\
Blue Bottle Coffee
Invoice #: INV-2024-0042
Date: March 5, 2024
Latte 5.50
Croissant 4.25
Sub-total 9.75
Sales Tax 8% 0.78
TOTAL $10.53
Paid with Visa
"""

EUROPEAN_RECEIPT = """\
Razón social: Distribuciones Ibéricas S.L.
Factura Nº: F-2024/118
Fecha: 5 de enero de 2024
Base imponible: 1.000,00
IVA 21%: 210,00
Total: 1.210,00
"""

OCR_NOISE_RECEIPT = "Kiosko Luna\r\nSubtotal: I0.00\r\nTotal: $10.70\r\n"


class TestScenarios:

    def test_subtotal_and_percentage(self, parser):
        result = parser.parse(ACME_RECEIPT)
        assert result.vendor_name == "Acme Corp"
        assert result.subtotal_amount == Decimal("100.00")
        assert result.tax_percentage == Decimal("7")
        assert result.tax_amount == Decimal("7.00")
        assert result.amount == Decimal("107.00")

    def test_zero_tax(self, parser):
        result = parser.parse(ZERO_TAX_RECEIPT)
        assert result.tax_amount == 0
        assert result.tax_percentage == 0
        assert result.subtotal_amount == Decimal("50.00")
        assert result.amount == Decimal("50.00")
        assert result.vendor_name == "Super Mercado El Rey"
        assert result.date == "03/11/2024"

    def test_discrepancy_correction(self, parser):
        result = parser.parse(DISCREPANCY_RECEIPT)
        assert result.subtotal_amount == Decimal("100.00")
        assert result.amount == Decimal("110.00")
        assert result.tax_amount == Decimal("10.00")
        assert result.tax_percentage == Decimal("10.0")

    def test_total_only(self, parser):
        result = parser.parse(TOTAL_ONLY_RECEIPT)
        assert result.amount == Decimal("88.00")
        assert result.subtotal_amount == Decimal("88.00")
        assert result.tax_amount is None
        assert result.tax_percentage is None


class TestRealisticReceipts:

    def test_panama_receipt(self, parser):
        result = parser.parse(PANAMA_RECEIPT)
        assert result.vendor_name == "FARMACIA ARROCHA S.A."
        assert result.invoice_number == "0001-00012345"
        assert result.date == "15/01/2024"
        assert result.subtotal_amount == Decimal("5.00")
        assert result.tax_percentage == Decimal("7")
        assert result.tax_amount == Decimal("0.35")
        assert result.amount == Decimal("5.35")

    def test_us_receipt(self, parser):
        result = parser.parse(US_RECEIPT)
        assert result.vendor_name == "Blue Bottle Coffee"
        assert result.invoice_number == "INV-2024-0042"
        assert result.date == "March 5, 2024"
        assert result.subtotal_amount == Decimal("9.75")
        assert result.tax_percentage == Decimal("8")
        assert result.tax_amount == Decimal("0.78")
        assert result.amount == Decimal("10.53")

    def test_european_receipt(self, parser):
        result = parser.parse(EUROPEAN_RECEIPT)
        assert result.vendor_name == "Distribuciones Ibéricas S.L."
        assert result.invoice_number == "F-2024/118"
        assert result.date == "5 de enero de 2024"
        assert result.subtotal_amount == Decimal("1000.00")
        assert result.tax_percentage == Decimal("21")
        assert result.tax_amount == Decimal("210.00")
        assert result.amount == Decimal("1210.00")

    def test_ocr_letter_digit_confusion(self, parser):
        result = parser.parse(OCR_NOISE_RECEIPT)
        assert result.vendor_name == "Kiosko Luna"
        assert result.subtotal_amount == Decimal("10.00")
        assert result.tax_amount == Decimal("0.70")
        assert result.amount == Decimal("10.70")


class TestRecordProperties:

    @pytest.mark.parametrize("text", [
        ACME_RECEIPT, ZERO_TAX_RECEIPT, DISCREPANCY_RECEIPT, TOTAL_ONLY_RECEIPT,
        PANAMA_RECEIPT, US_RECEIPT, EUROPEAN_RECEIPT, OCR_NOISE_RECEIPT,
    ])
    def test_invariants(self, parser, text):
        first = parser.parse(text)
        second = parser.parse(text)

        # Idempotence
        assert first.model_dump_json() == second.model_dump_json()
        assert first.raw_text == text

        # Reconciliation closure
        if None not in (first.subtotal_amount, first.tax_amount, first.amount):
            assert abs(first.subtotal_amount + first.tax_amount - first.amount) <= Decimal("0.10")

        # Percentage bound
        if first.tax_percentage is not None:
            assert Decimal("0") <= first.tax_percentage <= Decimal("100")

    @pytest.mark.parametrize("text", [
        "", "   \n\n  ", "no numbers at all", "%%%% $$$ ,,,.",
        "Total: 1234567890123456789012345678901.00",
    ])
    def test_garbage_input_never_raises(self, parser, text):
        result = parser.parse(text)
        assert result.raw_text == text
        assert result.amount is None
        assert result.subtotal_amount is None
        assert result.tax_amount is None

    def test_overlong_subtotal_leaves_other_fields_intact(self, parser):
        text = "Subtotal: 99999999999999999999999999999.99\nTax 7%\nTotal: 5.00"
        result = parser.parse(text)
        assert result.amount == Decimal("5.00")
        assert result.tax_percentage == Decimal("7")
        assert result.tax_amount is None

    def test_failing_extractor_only_drops_its_field(self, parser, monkeypatch):
        def broken(*args, **kwargs):
            raise ValueError("bad date token")

        monkeypatch.setattr("receipt_app.services.parser.extract_date", broken)
        result = parser.parse(ACME_RECEIPT)
        assert result.date is None
        assert result.vendor_name == "Acme Corp"
        assert result.amount == Decimal("107.00")

    def test_record_is_immutable(self, parser):
        result = parser.parse(ACME_RECEIPT)
        with pytest.raises(Exception):
            result.amount = Decimal("1.00")

    def test_json_uses_camel_case_numbers(self, parser):
        data = parser.parse(ACME_RECEIPT).model_dump(mode='json', by_alias=True)
        assert data['rawText'] == ACME_RECEIPT
        assert data['subtotalAmount'] == 100.0
        assert data['taxAmount'] == 7.0
        assert data['amount'] == 107.0
        assert data['vendorName'] == "Acme Corp"
        assert data['invoiceNumber'] is None

    def test_debug_trace(self, parser):
        debug = {}
        parser.parse(ACME_RECEIPT, _debug=debug)
        assert debug['patterns_matched']['amount'] == 'total'
        assert debug['patterns_matched']['subtotal'] == 'subtotal'
        assert debug['patterns_matched']['tax_percentage'] == 'tax_then_percent'
        assert 'tax_from_percentage' in debug['reconciliation_steps']
