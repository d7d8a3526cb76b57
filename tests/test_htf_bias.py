"""Tests for the weighted higher-timeframe bias."""

from mtf_engine.strategy.htf_bias import compute_htf_bias
from mtf_engine.strategy.models import HTFBias, TimeframeError


class TestHTFBias:
    def test_aligned_uptrend_is_confident_long(self, make_analysis):
        h4 = make_analysis("4h", trend="UPTREND", stoch_condition="BULLISH")
        h1 = make_analysis("1h", trend="UPTREND", stoch_condition="BULLISH")
        bias = compute_htf_bias(h4, h1)
        assert bias.direction == "long"
        assert bias.confidence >= 80
        assert bias.source == "4h"

    def test_flat_without_stoch_is_neutral(self, make_analysis):
        h4 = make_analysis("4h", trend="FLAT")
        h1 = make_analysis("1h", trend="FLAT")
        assert compute_htf_bias(h4, h1) == HTFBias("neutral", 0, "none")

    def test_stoch_only_tie_is_mixed(self, make_analysis):
        h4 = make_analysis("4h", stoch_condition="BULLISH")
        h1 = make_analysis("1h", stoch_condition="OVERBOUGHT")
        assert compute_htf_bias(h4, h1) == HTFBias("neutral", 0, "mixed")

    def test_tie_prefers_1h_trend(self, make_analysis):
        h4 = make_analysis("4h", trend="DOWNTREND", stoch_condition="BULLISH")
        h1 = make_analysis("1h", trend="UPTREND", stoch_condition="BULLISH")
        assert compute_htf_bias(h4, h1) == HTFBias("long", 60, "1h")

    def test_4h_trend_outweighs_1h_stoch(self, make_analysis):
        h4 = make_analysis("4h", trend="DOWNTREND")
        h1 = make_analysis("1h", stoch_condition="BULLISH")
        assert compute_htf_bias(h4, h1) == HTFBias("short", 80, "4h")

    def test_source_is_1h_when_4h_flat(self, make_analysis):
        h4 = make_analysis("4h", trend="FLAT")
        h1 = make_analysis("1h", trend="UPTREND")
        assert compute_htf_bias(h4, h1) == HTFBias("long", 100, "1h")

    def test_confidence_is_winning_share(self, make_analysis):
        h4 = make_analysis("4h", trend="UPTREND")
        h1 = make_analysis("1h", trend="DOWNTREND")
        assert compute_htf_bias(h4, h1) == HTFBias("long", 67, "4h")

    def test_missing_timeframes(self):
        assert compute_htf_bias(None, TimeframeError()) == HTFBias()

    def test_half_share_rounds_up(self, make_analysis):
        h4 = make_analysis("4h", trend="UPTREND", stoch_condition="BULLISH")
        h1 = make_analysis("1h", trend="DOWNTREND", stoch_condition="BEARISH")
        assert compute_htf_bias(h4, h1) == HTFBias("long", 63, "4h")
