"""
Tests for client name suggestions
"""

import pytest

from app.services.client_names import (
    ClientNameService,
    capitalize_client_name,
    clean_account_name,
    suggest_client_name,
    validate_client_name,
)


class TestSuggestClientName:
    """Tests for deriving names from ad account names."""

    def test_strips_prefix_and_suffix(self):
        assert suggest_client_name("Ad Account - Loja XYZ Ads") == "Loja XYZ"

    def test_keeps_words_ending_in_ads(self):
        assert clean_account_name("Super Leads") == "Super Leads"

    def test_strips_parenthesised_suffix(self):
        assert clean_account_name("Clinica Sorriso (Ads)") == "Clinica Sorriso"

    def test_portuguese_particles_lowercased(self):
        assert capitalize_client_name("CASA DA PIZZA") == "CASA DA PIZZA"
        assert capitalize_client_name("casa da pizza") == "Casa da Pizza"

    def test_empty_falls_back_to_default(self):
        assert suggest_client_name("Meta Ads") == "Novo Cliente"


class TestValidateClientName:
    """Tests for client name validation."""

    @pytest.mark.parametrize("name", ["", "   ", "a", "x" * 101, "12345"])
    def test_invalid(self, name):
        result = validate_client_name(name)

        assert result["valid"] is False
        assert result["error"]

    def test_valid(self):
        assert validate_client_name("Loja XYZ") == {"valid": True, "error": None}


class TestUniqueNames:
    """Tests for workspace-unique names."""

    @pytest.fixture
    def taken(self, fake_supabase):
        names = set()

        def lookup(query):
            return [{"id": "x"}] if query.filter_value("name", "ilike") in names else []

        fake_supabase.on("clients", "select", lookup)
        return names

    def test_unused_name_is_kept(self, fake_supabase, taken):
        service = ClientNameService(fake_supabase)

        assert service.generate_unique_client_name("Loja", "ws-1") == "Loja"

    def test_numbered_suffix(self, fake_supabase, taken):
        taken.update({"Loja", "Loja (2)"})
        service = ClientNameService(fake_supabase)

        assert service.generate_unique_client_name("Loja", "ws-1") == "Loja (3)"

    def test_suggestions_per_account(self, fake_supabase, taken):
        service = ClientNameService(fake_supabase)

        suggestions = service.generate_client_name_suggestions(
            [{"id": "act_1", "name": "FB Ads - padaria"}], "ws-1"
        )

        assert suggestions == [{"account_id": "act_1", "account_name": "FB Ads - padaria", "suggested_name": "Padaria"}]

    def test_grouped_name_from_email(self, fake_supabase, taken):
        service = ClientNameService(fake_supabase)

        assert service.generate_grouped_client_name("ws-1", "joana@example.com") == "Joana"

    def test_grouped_name_default(self, fake_supabase, taken):
        service = ClientNameService(fake_supabase)

        assert service.generate_grouped_client_name("ws-1") == "Minha Empresa"
