"""
Streamlit admin console for the vinyl pricing engine.

Features:
- Buy / sell calculators with the full calculation trace
- Markdown checker for listed inventory
- Active policy view, version history and rollback per scope
"""
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
import streamlit as st

# Add src to path for imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from vinyl_pricing.api.state import build_components
from vinyl_pricing.config.logging import init_logging
from vinyl_pricing.engine.calculator import VALID_CONDITIONS
from vinyl_pricing.errors import PricingError


st.set_page_config(
    page_title="Vinyl Pricing Console",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_components():
    """Get cached engine components."""
    init_logging()
    return build_components()


try:
    components = get_components()
except Exception as e:
    st.error(f"System Error: {e}")
    st.stop()

engine = components.engine
policy_service = components.policy_service


def show_result(result):
    """Render a price result with its breakdown and trace."""
    col1, col2 = st.columns(2)
    col1.metric("Price", f"${result.price:,.2f}")
    if result.margin_percent is not None:
        col2.metric("Margin", f"{result.margin_percent:.1f}%")
    elif result.offer_expires_at is not None:
        col2.metric("Offer expires", result.offer_expires_at.strftime('%Y-%m-%d'))

    st.caption(f"Policy: {result.policy_used}" + (f" (v{result.policy_version})" if result.policy_version else ""))
    with st.expander("🔍 Calculation Trace", expanded=True):
        for t in result.trace:
            if t.value:
                st.caption(f"**{t.step}**: {t.description} = `{t.value}`")
            else:
                st.caption(f"**{t.step}**: {t.description}")
    with st.expander("Breakdown"):
        st.json(result.to_dict()['breakdown'])


# ============================================================================
# SIDEBAR: Cache & status
# ============================================================================
with st.sidebar:
    st.header("⚙️ Engine")
    st.caption(f"Database: `{components.settings.database_url}`")
    st.caption(f"Policy cache TTL: {components.settings.policy_cache_ttl_seconds:.0f}s")
    if st.button("Clear policy cache"):
        policy_service.clear_policy_cache()
        st.success("Policy cache cleared")


st.title("Vinyl Pricing Console")
st.caption(f"Pricing Engine Active | {datetime.now().strftime('%Y-%m-%d')}")

tab_buy, tab_sell, tab_markdown, tab_policy = st.tabs(["💵 Buy", "🏷️ Sell", "📉 Markdown", "🔧 Policies"])


# ============================================================================
# TAB 1: BUY OFFER
# ============================================================================
with tab_buy:
    with st.form("buy_form"):
        release_id = st.text_input("Release ID", key="buy_release")
        c1, c2, c3, c4 = st.columns(4)
        media = c1.selectbox("Media", VALID_CONDITIONS, index=1, key="buy_media")
        sleeve = c2.selectbox("Sleeve", VALID_CONDITIONS, index=1, key="buy_sleeve")
        source = c3.selectbox("Source", ["(policy)", "HYBRID", "DISCOGS", "EBAY"], key="buy_source")
        statistic = c4.selectbox("Statistic", ["(policy)", "median", "low", "high"], key="buy_stat")
        submitted = st.form_submit_button("Calculate offer")

    if submitted:
        try:
            result = engine.calculate_buy_price(
                release_id, media, sleeve,
                market_source=None if source == "(policy)" else source,
                market_statistic=None if statistic == "(policy)" else statistic,
            )
            show_result(result)
        except PricingError as e:
            st.error(f"{e.code}: {e.message}")


# ============================================================================
# TAB 2: SELL PRICE
# ============================================================================
with tab_sell:
    with st.form("sell_form"):
        release_id = st.text_input("Release ID", key="sell_release")
        c1, c2, c3 = st.columns(3)
        media = c1.selectbox("Media", VALID_CONDITIONS, index=1, key="sell_media")
        sleeve = c2.selectbox("Sleeve", VALID_CONDITIONS, index=1, key="sell_sleeve")
        cost_basis = c3.number_input("Cost basis ($)", min_value=0.0, value=0.0, step=0.25)
        submitted = st.form_submit_button("Calculate price")

    if submitted:
        try:
            show_result(engine.calculate_sell_price(release_id, media, sleeve, cost_basis))
        except PricingError as e:
            st.error(f"{e.code}: {e.message}")


# ============================================================================
# TAB 3: MARKDOWN
# ============================================================================
with tab_markdown:
    c1, c2, c3 = st.columns(3)
    current_price = c1.number_input("Current price ($)", min_value=0.01, value=100.0, step=1.0)
    days_ago = c2.number_input("Days listed", min_value=0, value=35, step=1)
    md_cost = c3.number_input("Cost basis ($)", min_value=0.0, value=50.0, step=1.0, key="md_cost")

    try:
        listed_at = datetime.now(timezone.utc) - timedelta(days=int(days_ago))
        markdown = engine.calculate_markdown(current_price, listed_at, md_cost)
        m1, m2, m3 = st.columns(3)
        m1.metric("New price", f"${markdown.new_price:,.2f}", delta=f"-{markdown.discount_percent}%")
        m2.metric("Days listed", markdown.days_listed)
        m3.metric("Covers cost", "Yes" if markdown.margin_protected else "No")
        if not markdown.margin_protected:
            st.warning("Marked-down price is below cost basis")
    except PricingError as e:
        st.error(f"{e.code}: {e.message}")


# ============================================================================
# TAB 4: POLICIES
# ============================================================================
with tab_policy:
    scope = st.radio("Scope", ["BUYER", "SELLER"], horizontal=True)
    active = policy_service.get_active_policy(scope)

    if active is None:
        st.info(f"No active {scope} policy, engine defaults apply")
    else:
        st.subheader(f"{active.name} (v{active.version})")
        st.json(active.to_dict())

    st.subheader("History")
    history = policy_service.list_policy_history(scope)
    if history:
        df = pd.DataFrame([
            {
                'Version': h.policy.version,
                'Name': h.policy.name,
                'Active': h.policy.is_active,
                'Created By': h.policy.created_by,
                'Created At': h.policy.created_at,
                'Last Change': h.audits[0].change_type if h.audits else None,
            }
            for h in history
        ])
        st.dataframe(df, use_container_width=True, hide_index=True)

        versions = [h.policy.version for h in history if not h.policy.is_active]
        if versions:
            c1, c2 = st.columns([1, 3])
            target = c1.selectbox("Restore version", versions)
            if c2.button("Roll back"):
                try:
                    restored = policy_service.rollback_policy(scope, target, actor="console")
                    st.success(f"Restored v{target} as v{restored.version}")
                    st.rerun()
                except PricingError as e:
                    st.error(f"{e.code}: {e.message}")
    else:
        st.caption("No versions saved yet")

    with st.expander("Save new version"):
        template = active.to_dict() if active else {
            'name': f"{scope.title()} Pricing",
            'buyFormula': {},
            'sellFormula': {},
            'conditionCurve': dict(components.settings.defaults.condition_curve),
            'offerExpiryDays': components.settings.defaults.offer_expiry_days,
        }
        editable = {k: template.get(k) for k in (
            'name', 'buyFormula', 'sellFormula', 'conditionCurve', 'minOffer', 'maxOffer', 'offerExpiryDays'
        )}
        raw = st.text_area("Definition (JSON)", value=json.dumps(editable, indent=2), height=300)
        if st.button("Save policy"):
            try:
                saved = policy_service.save_policy(scope, json.loads(raw), actor="console")
                st.success(f"Saved {saved.scope} v{saved.version}")
                st.rerun()
            except json.JSONDecodeError as e:
                st.error(f"Invalid JSON: {e}")
            except PricingError as e:
                st.error(f"{e.code}: {e.message}")
                if e.details:
                    st.json(e.details)
