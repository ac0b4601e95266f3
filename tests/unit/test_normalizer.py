"""Tests for normalizer functions."""

import pytest
from datetime import datetime

from funding_assistant.core.models import CallType
from funding_assistant.core.normalizer import (
    cleanup_text,
    detect_sectors,
    detect_target_audience,
    determine_call_type,
    extract_amounts,
    extract_deadline,
    extract_email,
    extract_phone,
    format_amount,
    format_date_da,
    infer_de_minimis,
    normalize_sector,
    normalize_title,
    parse_amount,
    parse_date,
)


class TestParseDate:
    """Tests for parse_date function."""

    @pytest.mark.parametrize(
        "text",
        [
            "15. marts 2025",
            "15-03-2025",
            "2025-03-15",
            "15/03/2025",
            "March 15, 2025",
            "15 marts 2025",
            "15.03.2025",
        ],
    )
    def test_supported_formats(self, text):
        """Test every supported format yields the same date."""
        assert parse_date(text) == datetime(2025, 3, 15)

    def test_abbreviated_month(self):
        """Test abbreviated Danish month with trailing dot."""
        assert parse_date("1. okt. 2025") == datetime(2025, 10, 1)

    def test_trailing_punctuation(self):
        """Test surrounding whitespace and punctuation are ignored."""
        assert parse_date("  31. december 2025. ") == datetime(2025, 12, 31)

    def test_generic_fallback(self):
        """Test unlisted formats still parse via the generic parser."""
        assert parse_date("2025-03-15T12:30:00") == datetime(2025, 3, 15)

    def test_partial_date_defaults_to_first(self):
        """Test missing day and month default to January 1st, not today."""
        assert parse_date("2027") == datetime(2027, 1, 1)
        assert parse_date("March 2027") == datetime(2027, 3, 1)

    def test_garbage_returns_none(self):
        """Test unparsable text returns None instead of raising."""
        assert parse_date("ikke en dato") is None

    def test_invalid_day_returns_none(self):
        """Test impossible calendar date returns None."""
        assert parse_date("31-02-2025") is None

    def test_empty_string(self):
        """Test empty string returns None."""
        assert parse_date("") is None

    def test_none_input(self):
        """Test None input returns None."""
        assert parse_date(None) is None


class TestParseAmount:
    """Tests for parse_amount function."""

    def test_millions_danish(self):
        """Test 'mio. kr.' suffix."""
        assert parse_amount("5 mio. kr.") == 5_000_000

    def test_decimal_comma_millions(self):
        """Test decimal comma with mill suffix."""
        assert parse_amount("2,5 mill. DKK") == 2_500_000

    def test_billions(self):
        """Test 'mia.' suffix."""
        assert parse_amount("1,2 mia. kr.") == 1_200_000_000

    def test_thousands_separator(self):
        """Test Danish thousands separators."""
        assert parse_amount("500.000 kr.") == 500_000

    def test_space_thousands_separator(self):
        """Test space-separated thousands."""
        assert parse_amount("1 500 000 kr.") == 1_500_000

    def test_euro_converted(self):
        """Test euro amounts are converted to DKK."""
        assert parse_amount("€500.000") == 3_750_000

    def test_euro_millions_converted(self):
        """Test euro with magnitude suffix is converted after scaling."""
        assert parse_amount("€2 mio") == 15_000_000

    def test_custom_rate(self):
        """Test conversion rate is configurable."""
        assert parse_amount("EUR 100", eur_rate=7.46) == 746

    def test_danish_word_not_euro(self):
        """Test words starting with 'euro' do not trigger conversion."""
        assert parse_amount("Europæisk pulje på 3 mio. kr.") == 3_000_000

    def test_no_number(self):
        """Test text without digits returns None."""
        assert parse_amount("ikke angivet") is None

    def test_empty(self):
        """Test empty input returns None."""
        assert parse_amount("") is None


class TestExtractAmounts:
    """Tests for extract_amounts function."""

    def test_single_max(self):
        """Test 'op til' amount counted once."""
        assert extract_amounts("Du kan søge op til 5 mio. kr. i tilskud.") == (None, 5_000_000)

    def test_range(self):
        """Test two amounts give min and max."""
        text = "Projekter på mindst 1 mio. kr. og maksimalt 15 mio. kr."
        assert extract_amounts(text) == (1_000_000, 15_000_000)

    def test_nothing_found(self):
        """Test text without amounts."""
        assert extract_amounts("Ingen beløb her") == (None, None)


class TestExtractDeadline:
    """Tests for extract_deadline function."""

    def test_danish_label(self):
        """Test 'Ansøgningsfrist' label."""
        text = "Ansøgningsfrist: 15. marts 2025 kl. 12:00"
        assert extract_deadline(text) == datetime(2025, 3, 15)

    def test_numeric_date(self):
        """Test numeric date after label."""
        assert extract_deadline("Deadline 01-10-2025") == datetime(2025, 10, 1)

    def test_custom_labels(self):
        """Test only the given labels are searched."""
        text = "Frist: 01-10-2025"
        assert extract_deadline(text, labels=["senest"]) is None
        assert extract_deadline(text, labels=["frist"]) == datetime(2025, 10, 1)

    def test_no_label(self):
        """Test date without a label is ignored."""
        assert extract_deadline("Arrangement 01-10-2025") is None


class TestContacts:
    """Tests for email and phone extraction."""

    def test_extract_email(self):
        """Test email in text."""
        assert extract_email("Skriv til info@innovationsfonden.dk for hjælp") == "info@innovationsfonden.dk"

    def test_extract_email_none(self):
        """Test text without email."""
        assert extract_email("ingen adresse") is None

    def test_extract_phone_with_prefix(self):
        """Test +45 prefixed number."""
        assert extract_phone("Ring på +45 12 34 56 78") == "+45 12 34 56 78"

    def test_extract_phone_compact(self):
        """Test eight digits without spaces."""
        assert extract_phone("Tlf. 12345678") == "12345678"

    def test_extract_phone_none(self):
        """Test text without phone number."""
        assert extract_phone("ingen nummer") is None


class TestClassification:
    """Tests for call type, sector and audience classification."""

    def test_grant_wins_over_loan(self):
        """Test grant keyword takes precedence."""
        assert determine_call_type("Tilskud og lån til iværksættere") == CallType.GRANT

    def test_loan(self):
        """Test loan keyword."""
        assert determine_call_type("Lån til vækst") == CallType.LOAN

    def test_voucher(self):
        """Test voucher keyword."""
        assert determine_call_type("DLSC Startup Voucher") == CallType.VOUCHER

    def test_default_grant(self):
        """Test unclassifiable text defaults to grant."""
        assert determine_call_type("Innovation Sprint") == CallType.GRANT

    def test_normalize_sector_synonym(self):
        """Test synonyms map to canonical tags."""
        assert normalize_sector("Medical Technology") == "medtech"
        assert normalize_sector("e-sundhed") == "digital_health"

    def test_normalize_sector_unknown(self):
        """Test unknown sectors pass through lower-cased."""
        assert normalize_sector("Agritech") == "agritech"

    def test_detect_sectors(self):
        """Test keyword scan keeps table order."""
        assert detect_sectors("Digital sundhed og medtech løsninger") == ["medtech", "digital_health"]

    def test_detect_sectors_default(self):
        """Test life-science default when nothing matches."""
        assert detect_sectors("Generel innovation") == ["biotech", "medtech", "pharma", "digital_health"]

    def test_detect_audience_sme_implies_startup(self):
        """Test SME mention also tags startups."""
        assert detect_target_audience("For SMV'er i hele landet") == ["startup", "sme"]

    def test_detect_audience_research(self):
        """Test research keywords."""
        assert detect_target_audience("Samarbejde med et universitet") == ["research"]

    def test_detect_audience_default(self):
        """Test default audience."""
        assert detect_target_audience("Noget helt andet") == ["startup", "sme"]


class TestDeMinimis:
    """Tests for infer_de_minimis function."""

    def test_at_threshold(self):
        """Test threshold itself is de-minimis."""
        assert infer_de_minimis(2_000_000) is True

    def test_above_threshold(self):
        """Test larger awards are not de-minimis."""
        assert infer_de_minimis(2_000_001) is False

    def test_unknown_amount(self):
        """Test unknown amount is not de-minimis."""
        assert infer_de_minimis(None) is False


class TestFormatting:
    """Tests for text cleanup and display helpers."""

    def test_normalize_title(self):
        """Test whitespace collapse."""
        assert normalize_title("  Grand\n  Solutions ") == "Grand Solutions"

    def test_cleanup_text(self):
        """Test multiple blank lines collapse to one."""
        assert cleanup_text("Linje 1\n\n\n\nLinje 2") == "Linje 1\n\nLinje 2"

    def test_format_amount(self):
        """Test Danish thousands separators."""
        assert format_amount(5_000_000) == "5.000.000"
        assert format_amount(None) == ""

    def test_format_date_da(self):
        """Test Danish short date."""
        assert format_date_da(datetime(2025, 3, 15)) == "15.3.2025"
