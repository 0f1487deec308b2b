"""Tests for stock status classification and price parsing."""
from restock.models import StockStatus
from restock.parse.stock_classifier import build_sample, classify, parse_price

from conftest import NOW


def test_temporarily_sold_out_is_unavailable():
    """Test "Tillfälligt slut i lager" beats the generic "i lager" keyword."""
    result = classify("Tillfälligt slut i lager")
    assert result.status == StockStatus.UNAVAILABLE
    assert result.confidence >= 90


def test_in_stock_is_available():
    """Test plain Swedish in-stock text."""
    result = classify("Finns i lager")
    assert result.status == StockStatus.AVAILABLE
    assert result.confidence == 90


def test_limited_quantity_wins_over_available():
    """Test limited phrase is recognized even though "finns i lager" also matches."""
    result = classify("Finns i lager, begränsat antal")
    assert result.status == StockStatus.LIMITED
    assert result.status.is_orderable


def test_limited_with_extra_whitespace_and_case():
    """Test whitespace is collapsed and case ignored before matching."""
    assert classify("  FINNS I LAGER,\n  begränsat   antal ").status == StockStatus.LIMITED


def test_backorder_text_is_unavailable():
    """Test restorder keyword."""
    assert classify("Restorder").status == StockStatus.UNAVAILABLE
    assert classify("Out of stock").status == StockStatus.UNAVAILABLE


def test_delivery_mention_is_available_with_lower_confidence():
    """Test delivery heuristic forces available at 80."""
    result = classify("Expected delivery next week")
    assert result.status == StockStatus.AVAILABLE
    assert result.confidence == 80


def test_no_signal_is_unknown():
    """Test unknown text is never treated as orderable."""
    result = classify("Okänd status")
    assert result.status == StockStatus.UNKNOWN
    assert result.confidence == 50
    assert not result.status.is_orderable


def test_empty_text():
    """Test empty and missing text."""
    assert classify("").status == StockStatus.UNKNOWN
    assert classify(None).status == StockStatus.UNKNOWN


def test_parse_price_swedish_format():
    """Test thousands separator and decimal comma."""
    assert parse_price("1 250,00 SEK") == 1250.0
    assert parse_price("400 kr") == 400.0


def test_parse_price_missing():
    """Test text without a price."""
    assert parse_price("Pris saknas") is None
    assert parse_price(None) is None


def test_build_sample():
    """Test sample carries classification and parsed price."""
    sample = build_sample("product1", "Finns i lager", NOW, price_text="400,00 kr")
    assert sample.product_id == "product1"
    assert sample.status == StockStatus.AVAILABLE
    assert sample.confidence == 90
    assert sample.price == 400.0
    assert sample.observed_at == NOW


def test_delivery_time_overrides_unavailable():
    """Test a mentioned delivery time forces available, keeping the higher confidence."""
    result = classify("Tillfälligt slut i lager, leveranstid 2-3 veckor")
    assert result.status == StockStatus.AVAILABLE
    assert result.confidence == 95


def test_delivery_time_does_not_override_limited():
    """Test limited stock stays limited when a delivery time is shown."""
    assert classify("Begränsat antal, leveranstid 1 dag").status == StockStatus.LIMITED


def test_not_available_swedish_variants():
    """Test "ej tillgänglig" and "tillfälligt slut" are unavailable, not read as "tillgänglig"."""
    result = classify("Ej tillgänglig")
    assert result.status == StockStatus.UNAVAILABLE
    assert result.confidence == 95
    assert classify("Tillfälligt slut").matched == "tillfälligt slut"
