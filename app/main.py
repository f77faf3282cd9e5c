"""
Streamlit Frontend for Kas Kontrakan

This is the interface the house treasurer uses to keep the shared
cash book: who paid, what was spent, which dues are still open, and the
monthly message for the residents' WhatsApp group.

DESIGN PRINCIPLES:
1. Every page renders from the session caches
2. Writes go through the flows and refresh the affected cache
3. Errors are shown in plain language, the page keeps working
4. Deletes need an explicit confirmation
"""

import asyncio
from datetime import date

import streamlit as st

from kas_manager.bills import GenerationResult
from kas_manager.config import get_settings, validate_all_settings
from kas_manager.formatting import (
    MONTH_NAMES,
    current_year_month,
    format_date,
    format_datetime,
    format_rupiah,
    year_options,
)
from kas_manager.ledger import balance_indicator, calculate_balance, total_account_balance
from kas_manager.models.entities import (
    AccountType,
    CategoryType,
    Floor,
    NewAccount,
    NewCategory,
    NewResident,
    RoomType,
    TransactionType,
)
from kas_manager.orchestrator import (
    AppComponents,
    ReceiptFile,
    create_app_components,
    create_receipt_storage,
    create_storage_backend,
)
from kas_manager.services.storage import DuplicateError


# Page configuration
st.set_page_config(
    page_title="Kas Kontrakan",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_backend():
    """Storage backend shared by all sessions (cached)."""
    return create_storage_backend(use_storage=True)


@st.cache_resource
def get_receipt_storage():
    return create_receipt_storage()


def get_components() -> AppComponents:
    """Per-session clients and flows, loaded on first use."""
    if "components" not in st.session_state:
        components = create_app_components(
            backend=get_backend(),
            receipt_storage=get_receipt_storage(),
        )
        with st.spinner("Memuat data..."):
            run_async(components.refresh_all())
        st.session_state.components = components
    return st.session_state.components


def show_client_error(client) -> None:
    if client.error:
        st.error(f"Gagal memuat {client.name}: {client.error}")


def month_picker(key: str) -> tuple[int, int]:
    """Year and month selectors, defaulting to the current month."""
    this_year, this_month = current_year_month()
    years = year_options(get_settings().app.year_options)

    col1, col2 = st.columns(2)
    with col1:
        month = st.selectbox(
            "Bulan",
            options=list(range(1, 13)),
            index=this_month - 1,
            format_func=lambda m: MONTH_NAMES[m - 1],
            key=f"{key}_month",
        )
    with col2:
        year = st.selectbox(
            "Tahun",
            options=years,
            index=years.index(this_year),
            key=f"{key}_year",
        )
    return year, month


def confirm_delete(label: str, key: str) -> bool:
    """Checkbox plus button; True only when both were used."""
    confirmed = st.checkbox(f"Ya, hapus {label}", key=f"{key}_confirm")
    clicked = st.button("🗑️ Hapus", key=f"{key}_delete", disabled=not confirmed)
    return confirmed and clicked


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Kas Kontrakan")
    st.sidebar.caption(components.backend.description)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Menu:",
        [
            "🏠 Dashboard",
            "📥 Pemasukan",
            "📤 Pengeluaran",
            "🧾 Iuran",
            "👥 Penghuni",
            "🏷️ Kategori",
            "🏦 Rekening",
            "📢 Broadcast",
            "⚙️ Pengaturan",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("🔄 Muat Ulang Data"):
        run_async(components.refresh_all())
        st.rerun()

    if page == "🏠 Dashboard":
        render_dashboard_page(components)
    elif page == "📥 Pemasukan":
        render_income_page(components)
    elif page == "📤 Pengeluaran":
        render_expense_page(components)
    elif page == "🧾 Iuran":
        render_dues_page(components)
    elif page == "👥 Penghuni":
        render_residents_page(components)
    elif page == "🏷️ Kategori":
        render_categories_page(components)
    elif page == "🏦 Rekening":
        render_accounts_page(components)
    elif page == "📢 Broadcast":
        render_broadcast_page(components)
    elif page == "⚙️ Pengaturan":
        render_settings_page(components)


def render_dashboard_page(components: AppComponents):
    """Overall balance and the latest transactions."""
    st.title("🏠 Dashboard")
    show_client_error(components.transactions)
    show_client_error(components.accounts)

    balance = calculate_balance(components.transactions.items)
    saldo = total_account_balance(components.accounts.items)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Saldo Kas", format_rupiah(saldo))
        st.caption(balance_indicator(saldo))
    with col2:
        st.metric("Total Pemasukan", format_rupiah(balance.income))
    with col3:
        st.metric("Total Pengeluaran", format_rupiah(balance.expense))

    st.markdown("---")
    st.subheader("Transaksi Terakhir")

    recent = components.transactions.recent(get_settings().app.recent_transactions_limit)
    if not recent:
        st.info("Belum ada transaksi.")
        return

    for t in recent:
        if t.type == TransactionType.INCOME:
            label = t.resident.name if t.resident else "Pemasukan"
            amount = f"+{format_rupiah(t.amount)}"
        else:
            label = t.category.name if t.category else "Pengeluaran"
            amount = f"-{format_rupiah(t.amount)}"
        col1, col2 = st.columns([3, 1])
        with col1:
            st.markdown(f"**{label}**  \n{format_date(t.transaction_date)}"
                        + (f" · {t.description}" if t.description else ""))
        with col2:
            st.markdown(f"**{amount}**")


def render_transaction_list(components: AppComponents, entries, key: str):
    for t in entries.transactions:
        if t.type == TransactionType.INCOME:
            label = t.resident.name if t.resident else "Lainnya"
        else:
            label = t.category.name if t.category else "Lainnya"

        with st.expander(f"{format_date(t.transaction_date)} · {label} · {format_rupiah(t.amount)}"):
            if t.description:
                st.markdown(t.description)
            if t.receipt_url:
                st.image(t.receipt_url, width=300)
            if confirm_delete("transaksi ini", f"{key}_{t.id}"):
                try:
                    run_async(components.transaction_flow.delete_transaction(t.id))
                    st.success("Transaksi dihapus")
                    st.rerun()
                except Exception as e:
                    st.error(f"Gagal menghapus: {str(e)}")


def render_income_page(components: AppComponents):
    """Income per month, add and delete."""
    st.title("📥 Pemasukan")
    show_client_error(components.transactions)

    year, month = month_picker("income")
    entries = components.transaction_flow.month_entries(year, month, TransactionType.INCOME)
    st.metric(f"Total {MONTH_NAMES[month - 1]} {year}", format_rupiah(entries.total))

    with st.expander("➕ Tambah Pemasukan"):
        residents = components.residents.items
        accounts = components.accounts.items
        with st.form("income_form", clear_on_submit=True):
            resident = st.selectbox(
                "Penghuni",
                options=[None] + residents,
                format_func=lambda r: "Lainnya" if r is None else r.name,
            )
            amount = st.number_input(
                "Jumlah (Rp) *",
                min_value=0,
                step=1000,
                value=0,
                key="income_amount",
            )
            account = st.selectbox(
                "Rekening",
                options=[None] + accounts,
                format_func=lambda a: "-" if a is None else a.name,
            )
            transaction_date = st.date_input("Tanggal", value=date.today())
            description = st.text_input("Keterangan")

            if st.form_submit_button("Simpan", type="primary"):
                if amount <= 0:
                    st.error("Jumlah harus lebih dari 0")
                else:
                    try:
                        run_async(components.transaction_flow.record_income(
                            amount=int(amount),
                            resident_id=resident.id if resident else None,
                            transaction_date=transaction_date,
                            description=description,
                            account_id=account.id if account else None,
                        ))
                        st.success("Pemasukan disimpan")
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")

    st.markdown("---")
    if not entries.transactions:
        st.info("Belum ada pemasukan bulan ini.")
    render_transaction_list(components, entries, "income")


def render_expense_page(components: AppComponents):
    """Expenses per month with optional receipt, add and delete."""
    st.title("📤 Pengeluaran")
    show_client_error(components.transactions)

    year, month = month_picker("expense")
    entries = components.transaction_flow.month_entries(year, month, TransactionType.EXPENSE)
    st.metric(f"Total {MONTH_NAMES[month - 1]} {year}", format_rupiah(entries.total))

    with st.expander("➕ Tambah Pengeluaran"):
        categories = components.categories.expense_categories()
        accounts = components.accounts.items
        with st.form("expense_form", clear_on_submit=True):
            category = st.selectbox(
                "Kategori",
                options=[None] + categories,
                format_func=lambda c: "Lainnya" if c is None else c.name,
            )
            amount = st.number_input("Jumlah (Rp) *", min_value=0, step=1000, key="expense_amount")
            account = st.selectbox(
                "Rekening",
                options=[None] + accounts,
                format_func=lambda a: "-" if a is None else a.name,
            )
            transaction_date = st.date_input("Tanggal", value=date.today())
            description = st.text_input("Keterangan")
            receipt_file = st.file_uploader(
                "Bukti / Nota (opsional)",
                type=get_settings().app.supported_formats_list,
            )

            if st.form_submit_button("Simpan", type="primary"):
                if amount <= 0:
                    st.error("Jumlah harus lebih dari 0")
                else:
                    receipt = None
                    if receipt_file is not None:
                        receipt = ReceiptFile(
                            content=receipt_file.getvalue(),
                            filename=receipt_file.name,
                        )
                    try:
                        with st.spinner("Menyimpan..."):
                            saved = run_async(components.transaction_flow.record_expense(
                                amount=int(amount),
                                category_id=category.id if category else None,
                                transaction_date=transaction_date,
                                description=description,
                                account_id=account.id if account else None,
                                receipt=receipt,
                            ))
                        if receipt is not None and not saved.receipt_url:
                            st.warning("Nota gagal diunggah, pengeluaran disimpan tanpa nota")
                        st.success("Pengeluaran disimpan")
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")

    st.markdown("---")
    if not entries.transactions:
        st.info("Belum ada pengeluaran bulan ini.")
    render_transaction_list(components, entries, "expense")


def render_dues_page(components: AppComponents):
    """Monthly bills: generate, toggle paid, totals."""
    st.title("🧾 Iuran Bulanan")
    show_client_error(components.residents)
    show_client_error(components.categories)

    year, month = month_picker("dues")
    flow = components.dues_flow

    if st.button("⚙️ Buat Tagihan Bulan Ini", type="primary"):
        try:
            result: GenerationResult = run_async(flow.generate(year, month))
            if result.created_count:
                st.success(f"{result.created_count} tagihan dibuat")
            else:
                st.info("Semua tagihan bulan ini sudah ada")
        except DuplicateError as e:
            st.warning(f"Sebagian tagihan sudah dibuat di tempat lain: {e}")
        except Exception as e:
            st.error(f"Gagal membuat tagihan: {str(e)}")

    try:
        bills = run_async(flow.load(year, month))
    except Exception as e:
        st.error(f"Gagal memuat tagihan: {str(e)}")
        return

    summary = flow.summary(bills)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Tagihan", format_rupiah(summary.total_due))
    with col2:
        st.metric("Sudah Dibayar", format_rupiah(summary.total_paid))
    with col3:
        st.metric("Belum Dibayar", format_rupiah(summary.outstanding))

    st.markdown("---")
    if not bills:
        st.info("Belum ada tagihan. Klik 'Buat Tagihan Bulan Ini'.")
        return

    for row in flow.grid(bills):
        st.markdown(f"**{row.resident.name}** · {format_rupiah(row.total_due)}"
                    + (" ✅" if row.all_paid else ""))
        columns = st.columns(max(len(row.cells), 1))
        for column, (category, bill) in zip(columns, row.cells):
            with column:
                if bill is None:
                    st.caption(f"{category.name}: -")
                    continue
                label = f"{'✅' if bill.is_paid else '⬜'} {category.name} {format_rupiah(bill.amount_due)}"
                if st.button(label, key=f"bill_{bill.id}"):
                    try:
                        run_async(flow.toggle_paid(bill))
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal mengubah status: {str(e)}")
                if bill.paid_at:
                    st.caption(f"Dibayar {format_datetime(bill.paid_at)}")


def room_label(room_type: RoomType) -> str:
    return "AC" if room_type == RoomType.AC else "Non-AC"


def floor_label(floor: Floor) -> str:
    return floor.value.title()


def category_type_label(category_type: CategoryType) -> str:
    return "Pemasukan" if category_type == CategoryType.INCOME else "Pengeluaran"


def render_residents_page(components: AppComponents):
    """Residents CRUD."""
    st.title("👥 Penghuni")
    client = components.residents
    show_client_error(client)

    with st.expander("➕ Tambah Penghuni"):
        with st.form("resident_form", clear_on_submit=True):
            name = st.text_input("Nama *")
            amount = st.number_input("Iuran Bulanan Default (Rp)", min_value=0, step=1000)
            room_type = st.selectbox("Tipe Kamar", options=list(RoomType), format_func=room_label)
            floor = st.selectbox("Lantai", options=list(Floor), format_func=floor_label)
            if st.form_submit_button("Simpan", type="primary"):
                if not name.strip():
                    st.error("Nama wajib diisi")
                else:
                    try:
                        run_async(client.create(NewResident(
                            name=name,
                            default_monthly_amount=int(amount),
                            room_type=room_type,
                            floor=floor,
                        )))
                        st.success("Penghuni ditambahkan")
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")

    st.markdown("---")
    if not client.items:
        st.info("Belum ada penghuni.")

    for resident in client.items:
        key = f"resident_{resident.id}"
        title = f"{resident.name} · {room_label(resident.room_type)} · {floor_label(resident.floor)}"
        with st.expander(title):
            with st.form(f"{key}_edit"):
                new_name = st.text_input("Nama *", value=resident.name, key=f"{key}_name")
                new_amount = st.number_input(
                    "Iuran Bulanan Default (Rp)",
                    min_value=0,
                    step=1000,
                    value=resident.default_monthly_amount,
                    key=f"{key}_amount",
                )
                new_room_type = st.selectbox(
                    "Tipe Kamar",
                    options=list(RoomType),
                    index=list(RoomType).index(resident.room_type),
                    format_func=room_label,
                    key=f"{key}_room_type",
                )
                new_floor = st.selectbox(
                    "Lantai",
                    options=list(Floor),
                    index=list(Floor).index(resident.floor),
                    format_func=floor_label,
                    key=f"{key}_floor",
                )
                if st.form_submit_button("💾 Simpan Perubahan"):
                    if not new_name.strip():
                        st.error("Nama wajib diisi")
                    else:
                        try:
                            run_async(client.update(resident.id, {
                                "name": new_name,
                                "default_monthly_amount": int(new_amount),
                                "room_type": new_room_type,
                                "floor": new_floor,
                            }))
                            st.rerun()
                        except Exception as e:
                            st.error(f"Gagal menyimpan: {str(e)}")
            if confirm_delete(resident.name, key):
                try:
                    run_async(client.delete(resident.id))
                    st.rerun()
                except Exception as e:
                    st.error(f"Gagal menghapus: {str(e)}")


def render_categories_page(components: AppComponents):
    """Categories CRUD."""
    st.title("🏷️ Kategori")
    client = components.categories
    show_client_error(client)

    with st.expander("➕ Tambah Kategori"):
        with st.form("category_form", clear_on_submit=True):
            name = st.text_input("Nama *")
            category_type = st.selectbox(
                "Jenis",
                options=list(CategoryType),
                index=1,
                format_func=category_type_label,
            )
            per_person = st.number_input(
                "Iuran per Orang (Rp, 0 = tidak ada)",
                min_value=0,
                step=1000,
            )
            if st.form_submit_button("Simpan", type="primary"):
                if not name.strip():
                    st.error("Nama wajib diisi")
                else:
                    try:
                        run_async(client.create(NewCategory(
                            name=name,
                            type=category_type,
                            default_per_person=int(per_person) or None,
                        )))
                        st.success("Kategori ditambahkan")
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")

    st.markdown("---")
    for heading, categories in (
        ("Pengeluaran", client.expense_categories()),
        ("Pemasukan", client.income_categories()),
    ):
        st.subheader(heading)
        if not categories:
            st.caption("Belum ada kategori.")
        for category in categories:
            key = f"category_{category.id}"
            per_person = (
                f"{format_rupiah(category.default_per_person)}/org"
                if category.default_per_person else "-"
            )
            with st.expander(f"{category.name} · {per_person}"):
                with st.form(f"{key}_edit"):
                    new_name = st.text_input("Nama *", value=category.name, key=f"{key}_name")
                    new_type = st.selectbox(
                        "Jenis",
                        options=list(CategoryType),
                        index=list(CategoryType).index(category.type),
                        format_func=category_type_label,
                        key=f"{key}_type",
                    )
                    new_per_person = st.number_input(
                        "Iuran per Orang (Rp, 0 = tidak ada)",
                        min_value=0,
                        step=1000,
                        value=category.default_per_person or 0,
                        key=f"{key}_per_person",
                    )
                    if st.form_submit_button("💾 Simpan Perubahan"):
                        if not new_name.strip():
                            st.error("Nama wajib diisi")
                        else:
                            try:
                                run_async(client.update(category.id, {
                                    "name": new_name,
                                    "type": new_type,
                                    "default_per_person": int(new_per_person) or None,
                                }))
                                st.rerun()
                            except Exception as e:
                                st.error(f"Gagal menyimpan: {str(e)}")
                if confirm_delete(category.name, key):
                    try:
                        run_async(client.delete(category.id))
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menghapus: {str(e)}")


def render_accounts_page(components: AppComponents):
    """Accounts: total, e-wallets and banks, balance updates."""
    st.title("🏦 Rekening")
    client = components.accounts
    show_client_error(client)

    total = total_account_balance(client.items)
    st.metric("Total Saldo", format_rupiah(total))
    st.caption(balance_indicator(total))

    with st.expander("➕ Tambah Rekening"):
        with st.form("account_form", clear_on_submit=True):
            name = st.text_input("Nama *")
            account_type = st.selectbox(
                "Jenis",
                options=list(AccountType),
                format_func=lambda t: "E-Wallet" if t == AccountType.EWALLET else "Bank",
            )
            provider = st.text_input("Provider * (mis. GoPay, BCA)")
            account_number = st.text_input("Nomor Rekening")
            balance = st.number_input("Saldo Awal (Rp)", step=1000, value=0)
            icon = st.text_input("Ikon (emoji)")
            if st.form_submit_button("Simpan", type="primary"):
                if not name.strip() or not provider.strip():
                    st.error("Nama dan provider wajib diisi")
                else:
                    try:
                        run_async(client.create(NewAccount(
                            name=name,
                            type=account_type,
                            provider=provider,
                            account_number=account_number or None,
                            balance=int(balance),
                            icon=icon or None,
                        )))
                        st.success("Rekening ditambahkan")
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")

    st.markdown("---")
    for heading, account_type in (("E-Wallet", AccountType.EWALLET), ("Bank", AccountType.BANK)):
        st.subheader(heading)
        accounts = client.by_type(account_type)
        if not accounts:
            st.caption("Belum ada rekening.")
        for account in accounts:
            icon = f"{account.icon} " if account.icon else ""
            with st.expander(f"{icon}{account.name} · {format_rupiah(account.balance)}"):
                st.caption(f"{account.provider} {account.account_number or ''}")
                new_balance = st.number_input(
                    "Saldo (Rp)",
                    step=1000,
                    value=account.balance,
                    key=f"account_balance_{account.id}",
                )
                if st.button("💾 Perbarui Saldo", key=f"account_save_{account.id}"):
                    try:
                        run_async(client.update_balance(account.id, int(new_balance)))
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menyimpan: {str(e)}")
                if confirm_delete(account.name, f"account_{account.id}"):
                    try:
                        run_async(client.delete(account.id))
                        st.rerun()
                    except Exception as e:
                        st.error(f"Gagal menghapus: {str(e)}")


def render_broadcast_page(components: AppComponents):
    """Monthly WhatsApp message: preview, copy, share, stats."""
    st.title("📢 Broadcast")
    year, month = month_picker("broadcast")

    result = run_async(components.broadcast_flow.build(year, month))

    st.subheader(f"Preview Broadcast {MONTH_NAMES[month - 1]} {year}")
    st.code(result.message, language=None)
    st.caption("Gunakan tombol salin di pojok kanan atas untuk menyalin pesan.")
    st.link_button("📱 Bagikan ke WhatsApp", result.share_url, type="primary")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Transaksi Masuk", result.stats.income_count)
    with col2:
        st.metric("Transaksi Keluar", result.stats.expense_count)
    with col3:
        st.metric("Total Masuk", format_rupiah(result.stats.total_income))
    with col4:
        st.metric("Total Keluar", format_rupiah(result.stats.total_expense))


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Pengaturan")

    st.markdown("### Status Koneksi")
    st.info(f"Penyimpanan: {components.backend.description}")

    status = validate_all_settings()

    services = [
        ("Cloudinary (Nota)", "cloudinary"),
        ("Google Sheets (Penyimpanan)", "google_sheets"),
        ("Aplikasi", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Terhubung")
        else:
            error = status.get(f"{key}_error", "Belum dikonfigurasi")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Konfigurasi")
    st.markdown(
        "Buat file `.env` berisi kredensial layanan. "
        "Lihat `.env.example` untuk daftar variabel yang dibutuhkan."
    )


if __name__ == "__main__":
    main()
