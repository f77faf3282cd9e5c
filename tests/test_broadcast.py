"""Tests for the broadcast message renderer."""

from urllib.parse import unquote

from kas_manager.broadcast import (
    broadcast_stats,
    render_broadcast,
    whatsapp_share_url,
)
from kas_manager.models.entities import Category, CategoryType, TransactionType


APP_URL = "https://kas-sigmafam.vercel.app"


class TestRenderBroadcast:
    """Tests for the monthly broadcast message."""

    def test_full_message(self, transaction_factory, budi, listrik, wifi, iuran):
        """A month with income, expenses and dues renders the complete message."""
        transactions = [
            transaction_factory("t-1", TransactionType.INCOME, 100000, resident=budi),
            transaction_factory("t-2", TransactionType.EXPENSE, 30000, category=listrik),
        ]

        message = render_broadcast(
            transactions,
            [listrik, wifi, iuran],
            current_balance=70000,
            year=2025,
            month=1,
            app_url=APP_URL,
        )

        assert message == (
            "https://kas-sigmafam.vercel.app\n"
            "\n"
            "*Iuran Januari 2025*\n"
            "\n"
            "*Uang Diterima:*\n"
            "Budi 100k\n"
            "Total: Rp 100.000\n"
            "\n"
            "*Uang Keluar:*\n"
            "30k (Listrik)\n"
            "Total: Rp 30.000\n"
            "\n"
            "*Iuran Listrik:*\n"
            "1. Listrik 50k/org\n"
            "\n"
            "*Iuran Lain-lain:*\n"
            "1. Wifi -\n"
            "\n"
            "*Ringkasan Januari:*\n"
            "Pemasukan: Rp 100.000\n"
            "Pengeluaran: Rp 30.000\n"
            "Selisih: +Rp 70.000\n"
            "\n"
            "*Saldo Kas Saat Ini: Rp 70.000*"
        )

    def test_empty_month_omits_sections(self):
        """A month without transactions has no income or expense section."""
        message = render_broadcast([], [], 0, 2025, 3, APP_URL)

        assert "*Uang Diterima:*" not in message
        assert "*Uang Keluar:*" not in message
        assert "*Iuran Listrik:*" not in message
        assert "*Iuran Lain-lain:*" not in message
        assert "*Iuran Maret 2025*" in message
        assert "Selisih: +Rp 0" in message
        assert message.endswith("*Saldo Kas Saat Ini: Rp 0*")

    def test_items_joined_with_plus_and_fallback_names(self, transaction_factory, budi):
        """Items are joined with ' + ' and unknown names fall back to Lainnya."""
        transactions = [
            transaction_factory("t-1", TransactionType.INCOME, 100000, resident=budi),
            transaction_factory("t-2", TransactionType.INCOME, 1500000),
            transaction_factory("t-3", TransactionType.EXPENSE, 12500),
        ]

        message = render_broadcast(transactions, [], 0, 2025, 1, APP_URL)

        assert "Budi 100k + Lainnya 1.5jt\nTotal: Rp 1.600.000" in message
        assert "12.5k (Lainnya)\nTotal: Rp 12.500" in message

    def test_negative_difference_has_no_plus(self, transaction_factory):
        """A negative difference keeps its minus sign and gets no '+'."""
        transactions = [transaction_factory("t-1", TransactionType.EXPENSE, 10000)]

        message = render_broadcast(transactions, [], -10000, 2025, 1, APP_URL)

        assert "Selisih: -Rp 10.000" in message
        assert "*Saldo Kas Saat Ini: -Rp 10.000*" in message

    def test_electricity_match_is_case_insensitive(self, listrik):
        """Any category containing 'listrik' in any case is an electricity due."""
        token = Category(id="c-2", name="Token LISTRIK Atas", type=CategoryType.EXPENSE)
        sampah = Category(
            id="c-3",
            name="Sampah",
            type=CategoryType.EXPENSE,
            default_per_person=10000,
        )

        message = render_broadcast([], [listrik, token, sampah], 0, 2025, 1, APP_URL)

        assert (
            "*Iuran Listrik:*\n"
            "1. Listrik 50k/org\n"
            "2. Token LISTRIK Atas -\n"
            "\n"
            "*Iuran Lain-lain:*\n"
            "1. Sampah 10k/org\n"
            "\n"
        ) in message

    def test_only_other_dues(self, wifi):
        """Without electricity categories only the other dues are listed."""
        message = render_broadcast([], [wifi], 0, 2025, 1, APP_URL)

        assert "*Iuran Listrik:*" not in message
        assert "*Iuran Lain-lain:*\n1. Wifi -\n\n" in message


class TestBroadcastStats:
    """Tests for the counts and totals shown next to the message."""

    def test_counts_and_totals(self, transaction_factory):
        """Income and expense are counted and summed separately."""
        stats = broadcast_stats([
            transaction_factory("t-1", TransactionType.INCOME, 100000),
            transaction_factory("t-2", TransactionType.INCOME, 50000),
            transaction_factory("t-3", TransactionType.EXPENSE, 30000),
        ])

        assert stats.income_count == 2
        assert stats.expense_count == 1
        assert stats.total_income == 150000
        assert stats.total_expense == 30000


class TestShareUrl:
    """Tests for the WhatsApp share link."""

    def test_whatsapp_link_is_url_encoded(self):
        """The message is URL-encoded into the wa.me text parameter."""
        message = "*Iuran Januari 2025*\nBudi 100k + Sari 150k"

        url = whatsapp_share_url(message)

        assert url.startswith("https://wa.me/?text=")
        encoded = url[len("https://wa.me/?text="):]
        assert " " not in encoded
        assert "\n" not in encoded
        assert "%2B" in encoded
        assert unquote(encoded) == message
