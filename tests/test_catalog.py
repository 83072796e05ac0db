"""Tests for the indicator catalog."""
import pytest
from alertcore.indicators.catalog import (
    DEFAULT_INDICATORS,
    Indicator,
    IndicatorCatalog,
    IndicatorKind,
    IndicatorNotFound,
    Parameter,
    ParameterType,
    SIMPLE_OUTPUT,
    build_catalog,
)


class TestDefaultCatalog:
    """Built-in indicators."""

    def test_listing_order(self, catalog):
        """Catalog lists indicators in registration order."""
        assert [i.id for i in catalog.list()] == ["PRICE", "RSI", "MACD", "BBANDS", "MA", "EMA"]

    def test_price_is_simple(self, catalog):
        price = catalog.lookup("PRICE")
        assert price.kind is IndicatorKind.SIMPLE
        assert price.params == ()
        assert price.output_names == (SIMPLE_OUTPUT,)

    def test_rsi_period_default(self, catalog):
        rsi = catalog.lookup("RSI")
        assert rsi.is_technical
        assert rsi.get_param("period").default == 14
        assert rsi.outputs == ("value",)

    def test_macd_outputs(self, catalog):
        macd = catalog.lookup("MACD")
        assert macd.outputs == ("valueMACD", "valueMACDSignal", "valueMACDHist")
        assert macd.default_params() == {"fastPeriod": 12, "slowPeriod": 26, "signalPeriod": 9}

    def test_lookup_unknown(self, catalog):
        with pytest.raises(IndicatorNotFound) as exc_info:
            catalog.lookup("VWAP")
        assert exc_info.value.indicator_id == "VWAP"
        assert "VWAP" in str(exc_info.value)

    def test_get_unknown_returns_none(self, catalog):
        assert catalog.get("VWAP") is None
        assert "RSI" in catalog
        assert len(catalog) == len(DEFAULT_INDICATORS)

    def test_to_dict_matches_form_shape(self, catalog):
        """Serialized form matches what the alert form expects."""
        data = catalog.lookup("BBANDS").to_dict()
        assert data["type"] == "technical"
        assert data["params"][1] == {
            "name": "stddev", "description": "Standard deviation", "default": 2, "type": "number"
        }
        assert "params" not in catalog.lookup("PRICE").to_dict()


class TestIndicatorShape:
    """Kind-dependent invariants enforced at registration."""

    def test_technical_needs_outputs(self):
        with pytest.raises(ValueError, match="at least one output"):
            Indicator("X", "X", IndicatorKind.TECHNICAL)

    def test_simple_rejects_params(self):
        with pytest.raises(ValueError):
            Indicator("X", "X", IndicatorKind.SIMPLE, params=(Parameter("p", "", 1),))

    def test_bad_default_rejected(self):
        with pytest.raises(ValueError, match="bad default"):
            Indicator(
                "X", "X", IndicatorKind.TECHNICAL,
                params=(Parameter("p", "", "fast", ParameterType.NUMBER),),
                outputs=("value",),
            )

    def test_duplicate_ids_rejected(self):
        price = Indicator("PRICE", "Price", IndicatorKind.SIMPLE)
        with pytest.raises(ValueError, match="Duplicate"):
            IndicatorCatalog([price, price])


class TestParameterCoercion:
    """ParameterType.coerce for each tagged type."""

    def test_number_from_string(self):
        assert ParameterType.NUMBER.coerce("21") == 21
        assert ParameterType.NUMBER.coerce("2.5") == 2.5

    def test_number_rejects_bool_and_text(self):
        with pytest.raises(ValueError):
            ParameterType.NUMBER.coerce(True)
        with pytest.raises(ValueError):
            ParameterType.NUMBER.coerce("fast")
        with pytest.raises(ValueError):
            ParameterType.NUMBER.coerce("nan")

    def test_string_requires_text(self):
        assert ParameterType.STRING.coerce("close") == "close"
        with pytest.raises(ValueError):
            ParameterType.STRING.coerce(5)

    def test_boolean_accepts_common_spellings(self):
        assert ParameterType.BOOLEAN.coerce("true") is True
        assert ParameterType.BOOLEAN.coerce("No") is False
        assert ParameterType.BOOLEAN.coerce(False) is False
        with pytest.raises(ValueError):
            ParameterType.BOOLEAN.coerce("maybe")


class TestBuildCatalog:
    """Config-declared indicators."""

    def test_extra_definition_registered(self):
        catalog = build_catalog([{
            "id": "STOCH",
            "name": "Stochastic",
            "type": "technical",
            "params": [{"name": "kPeriod", "default": 14}],
            "outputs": ["valueK", "valueD"],
        }])
        stoch = catalog.lookup("STOCH")
        assert stoch.get_param("kPeriod").type is ParameterType.NUMBER
        assert catalog.list()[-1] is stoch

    def test_duplicate_of_builtin_rejected(self):
        with pytest.raises(ValueError):
            build_catalog([{"id": "RSI", "type": "technical", "outputs": ["value"]}])

    def test_malformed_definition(self):
        with pytest.raises(ValueError, match="Malformed"):
            build_catalog([{"name": "no id"}])
