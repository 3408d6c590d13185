from contextlib import contextmanager
from typing import Optional

import pandas as pd
import streamlit as st

from core.aggregation import delta_summary
from core.config import load_settings
from core.filters import available_options
from core.metrics_drilldown import compute_drilldown
from core.metrics_explorer import compute_explorer
from core.metrics_overview import compute_overview
from core.session import BudgetSession


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .footer {margin-top: 2rem;padding: 1rem 0;opacity: 0.8;font-size: 12px;text-align: center;border-top: 1px solid rgba(0,0,0,0.08);}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def usd(value: Optional[float]) -> str:
    if value is None:
        return "—"
    return f"${float(value):,.0f}"


def render_page_header(title: str, breadcrumb: str, chips: list):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    if chips:
        st.markdown(
            "<div class='chip-row'>" + "".join(f"<span class='chip'>{c}</span>" for c in chips) + "</div>",
            unsafe_allow_html=True,
        )


def flush_notifications(session: BudgetSession):
    for note in session.notifications.active():
        if note.severity == "error":
            st.error(note.message)
        elif note.severity == "success":
            st.success(note.message)
        else:
            st.info(note.message)
        session.notifications.dismiss(note.id)


def clear_draft_widgets():
    """Drop the keyed adjustment inputs so they redraw from the session's DraftLedger."""
    for k in [k for k in st.session_state.keys() if str(k).startswith("draft::")]:
        del st.session_state[k]


def get_session() -> BudgetSession:
    if "budget_session" not in st.session_state:
        session = BudgetSession(settings=load_settings())
        session.load()
        st.session_state["budget_session"] = session
    return st.session_state["budget_session"]


# ---------- Dashboard page ----------
def render_dashboard(session: BudgetSession):
    render_page_header("Budget Explorer", "Dashboard", [f"Rows: {len(session.store):,}"])

    with st.sidebar:
        st.markdown("---")
        st.markdown("### Scenarios")
        name = st.text_input("Scenario name", "", key="scenario_name")
        description = st.text_input("Description (optional)", "", key="scenario_description")
        if st.button("Save scenario", key="save_scenario"):
            session.save_scenario(name, description)
        names = session.scenarios.names()
        if names:
            chosen = st.selectbox("Saved scenarios", names, key="saved_scenarios")
            if st.button("Load scenario", key="load_scenario") and session.load_scenario(chosen):
                clear_draft_widgets()
                st.rerun()
        export_name = st.text_input("Export name", "budget_scenario")
        if st.button("Prepare export"):
            result = session.export_csv(export_name)
            if result is not None:
                st.session_state["export_payload"] = result
        if st.session_state.get("export_payload"):
            filename, text = st.session_state["export_payload"]
            st.download_button("Download CSV", data=text.encode("utf-8"), file_name=filename, mime="text/csv")

    payload = compute_overview(session.store, session.ledger, drafts=session.drafts)

    cols = st.columns(3)
    for col, c in zip(cols, payload["cards"]):
        delta = None
        if c["changed"]:
            delta = f"{usd(c['delta'])} ({c['pct']:+.1f}%)"
        col.metric(c["label"], usd(c["after"]), delta=delta, delta_color="normal")

    drill = compute_drilldown(session.store, session.ledger, session.drilldown, kind="spending")
    with card("Budget Treemap"):
        groups = [n["name"] for n in payload["treemap"]]
        if drill["level"] == 2:
            if st.button("← Back to categories"):
                session.clear_group()
                st.rerun()
        picked = st.selectbox(
            "Drill into category",
            ["(none)"] + groups,
            index=(groups.index(session.drilldown.group) + 1) if session.drilldown.group in groups else 0,
        )
        new_group = None if picked == "(none)" else picked
        if new_group != session.drilldown.group:
            session.select_group(new_group)
            st.rerun()
        if drill["level"] == 2:
            dim = st.radio(
                "Breakdown",
                ["subgroup", "source"],
                index=0 if session.drilldown.dimension == "subgroup" else 1,
                format_func=lambda d: "Divisions" if d == "subgroup" else "Funding Sources",
                horizontal=True,
            )
            if dim != session.drilldown.dimension:
                session.set_dimension(dim)
                st.rerun()
            tiles = drill["tiles"]
            t1, t2, t3 = st.columns(3)
            t1.metric("Group total", usd(tiles["group_total"]))
            t2.metric("Number of divisions", tiles["subgroup_count"])
            t3.metric("% of total budget", f"{tiles['pct_of_total']:.1f}%")
            if drill["charts"]["donut"]:
                st.vega_lite_chart(drill["charts"]["donut"], use_container_width=True)
            nodes = pd.DataFrame(drill["nodes"])
            if not nodes.empty:
                nodes["share"] = (nodes["share"] * 100).round(1)
                st.dataframe(nodes[["name", "total", "share"]], use_container_width=True, hide_index=True)
        elif payload["charts"]["treemap"]:
            st.vega_lite_chart(payload["charts"]["treemap"], use_container_width=True)

    with card("Before / After"):
        st.vega_lite_chart(payload["charts"]["before_after"], use_container_width=True)

    with card("Adjustments"):
        st.caption("Enter a dollar change per line, then Calculate.")
        left, right = st.columns(2)
        for column, kind in ((left, "spending"), (right, "revenue")):
            with column:
                st.markdown(f"**{kind.capitalize()}**")
                for cat in payload["accordions"][kind]:
                    summary = delta_summary(cat["original"], cat["adjusted"])
                    with st.expander(f"{cat['group']}: {usd(summary['after'])}", expanded=False):
                        for item in cat["items"]:
                            text = st.text_input(
                                f"{item['subgroup']} ({usd(item['amount'])})",
                                value=item["draft"],
                                key=f"draft::{item['key']}",
                            )
                            if text != item["draft"]:
                                session.set_draft(item["key"], text)
        b1, b2 = st.columns(2)
        if b1.button("Calculate", type="primary", key="calculate"):
            session.commit_all()
            st.rerun()
        if b2.button("Reset all", key="reset_all"):
            session.reset_all()
            clear_draft_widgets()
            st.rerun()

        if payload["adjustments"]:
            adj = pd.DataFrame(payload["adjustments"])
            st.dataframe(adj[["group", "subgroup", "delta", "adjusted"]], use_container_width=True, hide_index=True)
            to_remove = st.selectbox("Remove adjustment", [""] + [a["key"] for a in payload["adjustments"]])
            if to_remove and st.button("Remove"):
                session.remove(to_remove)
                st.session_state.pop(f"draft::{to_remove}", None)
                st.rerun()


# ---------- Data Explorer page ----------
def render_explorer(session: BudgetSession):
    f = session.filters
    render_page_header("Data Explorer", "Dashboard / Data", [c for c in [f.group, f.subgroup, f.source, f.query] if c])

    c1, c2, c3, c4 = st.columns(4)
    query = c1.text_input("Search agency / division / source / appropriation…", f.query)
    # st.text_input reports only on enter or blur, so there is nothing to debounce here.
    if query != f.query:
        session.submit_query(query)

    groups = [""] + available_options(session.store, session.filters, "group")
    group = c2.selectbox("Agency", groups, index=groups.index(f.group) if f.group in groups else 0, format_func=lambda v: v or "All agencies")
    session.set_filter("group", group)

    subgroups = [""] + available_options(session.store, session.filters, "subgroup")
    subgroup = c3.selectbox(
        "Division",
        subgroups,
        index=subgroups.index(session.filters.subgroup) if session.filters.subgroup in subgroups else 0,
        format_func=lambda v: v or ("All divisions" if session.filters.group else "Pick agency first"),
        disabled=not session.filters.group,
    )
    session.set_filter("subgroup", subgroup)

    sources = [""] + available_options(session.store, session.filters, "source")
    source = c4.selectbox(
        "Source",
        sources,
        index=sources.index(session.filters.source) if session.filters.source in sources else 0,
        format_func=lambda v: v or "All sources",
    )
    session.set_filter("source", source)

    preview = compute_explorer(session.store, session.filters, scroll_offset=0, settings=session.settings)
    total_height = preview["window"]["total_height"]
    max_offset = max(0, total_height - session.settings.viewport_height)
    offset = st.slider("Scroll", 0, int(max_offset) or 1, int(min(session.scroll_offset, max_offset)), disabled=max_offset == 0)
    session.set_scroll(offset)

    payload = compute_explorer(session.store, session.filters, scroll_offset=session.scroll_offset, settings=session.settings)
    st.caption(f"Rows: {payload['count']:,} • Total: {usd(payload['total'])}")
    if not payload["rows"]:
        st.info("No rows match.")
        return
    w = payload["window"]
    st.caption(f"Showing rows {w['start'] + 1:,}–{w['end']:,} of {payload['count']:,}")
    table = pd.DataFrame(payload["rows"])[["group", "subgroup", "source", "label", "amount"]]
    table.columns = ["Agency", "Division", "Source", "Appropriation", "Amount"]
    st.dataframe(table, use_container_width=True, hide_index=True, height=session.settings.viewport_height)


# ---------- UI setup ----------
st.set_page_config(page_title="Budget Explorer", layout="wide")
inject_base_styles()

session = get_session()
if not session.loaded:
    flush_notifications(session)
    st.error(f"Budget data could not be loaded: {session.load_error}")
    st.stop()

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", ["Dashboard", "Data Explorer"], index=0)

if nav_choice == "Dashboard":
    render_dashboard(session)
else:
    render_explorer(session)

flush_notifications(session)

if session.last_updated:
    st.markdown(f"<div class='footer'>Data last updated: {session.last_updated}</div>", unsafe_allow_html=True)
