"""Tests for the Streamlit pages, driven through streamlit's AppTest."""

import asyncio
from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from kas_manager.models.entities import (
    CategoryType,
    Floor,
    NewCategory,
    NewResident,
    RoomType,
    TransactionType,
)
from kas_manager.orchestrator import create_app_components


APP_PATH = str(Path(__file__).resolve().parents[1] / "app" / "main.py")


@pytest.fixture
def components(backend):
    return create_app_components(backend=backend)


def open_page(components, page: str) -> AppTest:
    """Run the app with the given session components and switch to a page."""
    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.session_state["components"] = components
    at.run()
    at.sidebar.radio[0].set_value(page).run()
    return at


def button(at: AppTest, label: str):
    return next(b for b in at.button if b.label == label)


class TestIncomePage:
    """Tests for recording income from the Pemasukan page."""

    def test_saves_the_typed_amount_not_the_resident_default(self, components):
        """The amount typed in the form is saved even when a resident is picked."""
        budi = asyncio.run(components.residents.create(
            NewResident(name="Budi", default_monthly_amount=100000)
        ))
        at = open_page(components, "📥 Pemasukan")

        next(s for s in at.selectbox if s.label == "Penghuni").select_index(1)
        at.number_input(key="income_amount").set_value(25000)
        button(at, "Simpan").click()
        at.run()

        saved = components.transactions.items
        assert [t.amount for t in saved] == [25000]
        assert saved[0].resident_id == budi.id
        assert saved[0].type == TransactionType.INCOME


class TestResidentsPage:
    """Tests for editing residents."""

    def test_edit_updates_every_field(self, components, backend):
        """Name, default amount, room type and floor are all saved."""
        budi = asyncio.run(components.residents.create(NewResident(
            name="Budi",
            default_monthly_amount=100000,
            room_type=RoomType.NON_AC,
            floor=Floor.BAWAH,
        )))
        key = f"resident_{budi.id}"
        at = open_page(components, "👥 Penghuni")

        at.text_input(key=f"{key}_name").input("Budi Santoso")
        at.number_input(key=f"{key}_amount").set_value(120000)
        at.selectbox(key=f"{key}_room_type").select_index(list(RoomType).index(RoomType.AC))
        at.selectbox(key=f"{key}_floor").select_index(list(Floor).index(Floor.ATAS))
        button(at, "💾 Simpan Perubahan").click()
        at.run()

        stored = asyncio.run(backend.residents.get_by_id(budi.id))
        assert stored.name == "Budi Santoso"
        assert stored.default_monthly_amount == 120000
        assert stored.room_type == RoomType.AC
        assert stored.floor == Floor.ATAS
        assert components.residents.get(budi.id) == stored


class TestCategoriesPage:
    """Tests for editing categories."""

    def test_edit_updates_name_type_and_default(self, components, backend):
        """A category can be renamed, retyped and given a per-person due."""
        wifi = asyncio.run(components.categories.create(
            NewCategory(name="Wifi", type=CategoryType.EXPENSE)
        ))
        key = f"category_{wifi.id}"
        at = open_page(components, "🏷️ Kategori")

        at.text_input(key=f"{key}_name").input("Internet")
        at.number_input(key=f"{key}_per_person").set_value(25000)
        button(at, "💾 Simpan Perubahan").click()
        at.run()

        stored = asyncio.run(backend.categories.get_by_id(wifi.id))
        assert stored.name == "Internet"
        assert stored.type == CategoryType.EXPENSE
        assert stored.default_per_person == 25000

    def test_zero_default_clears_it(self, components, backend):
        """Setting the per-person due to 0 removes it."""
        listrik = asyncio.run(components.categories.create(
            NewCategory(name="Listrik", type=CategoryType.EXPENSE, default_per_person=50000)
        ))
        key = f"category_{listrik.id}"
        at = open_page(components, "🏷️ Kategori")

        at.number_input(key=f"{key}_per_person").set_value(0)
        at.selectbox(key=f"{key}_type").select_index(
            list(CategoryType).index(CategoryType.INCOME)
        )
        button(at, "💾 Simpan Perubahan").click()
        at.run()

        stored = asyncio.run(backend.categories.get_by_id(listrik.id))
        assert stored.default_per_person is None
        assert stored.type == CategoryType.INCOME
        assert components.categories.income_categories() == [stored]
