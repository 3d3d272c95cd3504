from contextlib import contextmanager
from dataclasses import asdict
from typing import List, Optional
from urllib.parse import parse_qs

import altair as alt
import pandas as pd
import pydeck as pdk
import streamlit as st

from confmap.charts import hex_to_rgb
from confmap.data import event_records, load_site_data, prepare_context
from confmap.display import FORMAT_LABELS, format_filter_summary
from confmap.filters import EventFilters, normalize_filters
from confmap.geocoding import AddressSearchClient, AddressSearchSession
from confmap.metrics_concentration import compute_concentration
from confmap.metrics_conferences import compute_conference_index, conference_history
from confmap.metrics_expansion import compute_expansion
from confmap.metrics_map import compute_map, deck_view_state
from confmap.metrics_overview import compute_dashboard
from confmap.metrics_seasonality import compute_seasonality
from confmap.metrics_venues import compute_venue_ranking
from confmap.models import CATEGORIES, LANGUAGES
from confmap.url_params import create_url_params, parse_url_params

alt.data_transformers.disable_max_rows()

LEVEL_LABELS = {"very_high": "Very high", "high": "High", "moderate": "Moderate", "low": "Low"}


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
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
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


def render_page_header(title: str, breadcrumb: str, f: EventFilters, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{format_filter_summary(f)}</div>", unsafe_allow_html=True)


def _with_selected(options: List, selected: List) -> List:
    """Keep current selections selectable even when the facet no longer offers them."""
    return list(options) + [s for s in selected if s not in options]


def _query_params_mapping() -> dict:
    return {key: st.query_params.get_all(key) for key in st.query_params.keys()}


def sync_query_params(f: EventFilters):
    target = parse_qs(create_url_params(f))
    if target != _query_params_mapping():
        st.query_params.from_dict(target)


# ---------- UI setup ----------
st.set_page_config(page_title="Japan Tech Conference Map", layout="wide")
inject_base_styles()
st.title("Japan Tech Conference Map")
st.caption("Where and when tech conferences happen across Japan.")

data_ctx = load_site_data()
all_events: pd.DataFrame = data_ctx["events"]
if all_events.empty:
    st.error(f"No events found. Check the JSON files under {data_ctx['data_dir']}.")
    st.stop()

# Seed widget state from the URL once per session.
if "_filters_seeded" not in st.session_state:
    url_filters = parse_url_params(_query_params_mapping())
    st.session_state["f_years"] = url_filters.years
    st.session_state["f_categories"] = url_filters.categories
    st.session_state["f_languages"] = url_filters.languages
    st.session_state["f_prefectures"] = url_filters.prefectures
    st.session_state["f_format"] = url_filters.format_mode
    st.session_state["f_search"] = url_filters.search_query
    st.session_state["f_venue_search"] = url_filters.venue_search_query
    st.session_state["_filters_seeded"] = True


def current_filters() -> EventFilters:
    return normalize_filters(
        {
            "years": st.session_state.get("f_years", []),
            "categories": st.session_state.get("f_categories", []),
            "languages": st.session_state.get("f_languages", []),
            "prefectures": st.session_state.get("f_prefectures", []),
            "format": st.session_state.get("f_format", "any"),
            "search_query": st.session_state.get("f_search", ""),
            "venue_search_query": st.session_state.get("f_venue_search", ""),
        }
    )


def clear_filters():
    for key in ("f_years", "f_categories", "f_languages", "f_prefectures"):
        st.session_state[key] = []
    st.session_state["f_format"] = "any"
    st.session_state["f_search"] = ""
    st.session_state["f_venue_search"] = ""


# Options depend on the selection made on the previous run.
options = prepare_context(current_filters(), data_ctx)["options"]

# ----- Sidebar: navigation + filters -----
with st.sidebar:
    st.markdown("### Navigate")
    current_page = st.radio("Navigate", ["Map", "List", "Dashboard", "Conferences"], index=0)

    st.markdown("---")
    st.markdown("### Filters")
    st.text_input("Conference name", key="f_search")
    st.text_input("Venue name", key="f_venue_search")
    st.multiselect("Year", options=_with_selected(options.years, st.session_state["f_years"]), key="f_years")
    st.multiselect(
        "Category",
        options=_with_selected(options.categories, st.session_state["f_categories"]),
        key="f_categories",
        help=f"{len(CATEGORIES)} categories in total.",
    )
    st.multiselect(
        "Language",
        options=_with_selected(options.languages, st.session_state["f_languages"]),
        key="f_languages",
        help=", ".join(LANGUAGES),
    )
    st.multiselect("Prefecture", options=_with_selected(options.prefectures, st.session_state["f_prefectures"]), key="f_prefectures")
    st.radio("Format", options=list(FORMAT_LABELS), format_func=FORMAT_LABELS.get, key="f_format", horizontal=True)
    st.button("Clear filters", on_click=clear_filters)

filters = current_filters()
sync_query_params(filters)
ctx = prepare_context(filters, data_ctx)
filtered_events: pd.DataFrame = ctx["filtered_events"]


# ----- Page renderers -----
@st.cache_resource
def get_address_client() -> AddressSearchClient:
    return AddressSearchClient()


def get_address_session() -> AddressSearchSession:
    if "_address_session" not in st.session_state:
        st.session_state["_address_session"] = AddressSearchSession(get_address_client())
    return st.session_state["_address_session"]


def render_map_page():
    render_page_header("Map", "Home / Map", filters, export_df=pd.DataFrame(event_records(filtered_events)), export_name="events.csv")

    with st.expander("Jump to an address", expanded=False):
        query = st.text_input("Address or place name", key="address_query")
        if query:
            candidates = get_address_session().search(query)
            if candidates is None:
                st.stop()
            if candidates:
                labels = [c.title for c in candidates]
                picked = st.selectbox("Results", options=range(len(candidates)), format_func=lambda i: labels[i])
                st.session_state["map_focus"] = asdict(candidates[picked])
            else:
                st.info("No matching address.")

    venue_ids = sorted(filtered_events["venue_id"].unique()) if not filtered_events.empty else []
    highlight = st.selectbox("Highlight venue", options=[""] + venue_ids, format_func=lambda v: v or "None")
    result = compute_map(filters, ctx, highlight_venue_id=highlight or None)
    markers = result["markers"]
    if not markers:
        st.info("No events match the current filters.")
        return

    points = pd.DataFrame(
        [
            {
                "lat": m["lat"],
                "lng": m["lng"],
                "color": hex_to_rgb(m["color"]),
                "radius": 800 + 300 * m["event_count"],
                "venue_name": m["venue_name"],
                "event_count": m["event_count"],
            }
            for m in markers
        ]
    )
    focus = st.session_state.get("map_focus")
    layers = [
        pdk.Layer(
            "ScatterplotLayer",
            points,
            get_position=["lng", "lat"],
            get_fill_color="color",
            get_radius="radius",
            radius_min_pixels=5,
            pickable=True,
        )
    ]
    if focus:
        layers.append(
            pdk.Layer(
                "ScatterplotLayer",
                pd.DataFrame([{"lat": focus["lat"], "lng": focus["lng"]}]),
                get_position=["lng", "lat"],
                get_fill_color=hex_to_rgb("#111827"),
                get_radius=600,
                radius_min_pixels=7,
            )
        )
    # A highlighted venue takes precedence over the last address search.
    view_state = deck_view_state(result["view"], focus=None if highlight else focus)
    st.pydeck_chart(
        pdk.Deck(
            layers=layers,
            initial_view_state=pdk.ViewState(**view_state),
            tooltip={"text": "{venue_name}\n{event_count} events"},
            map_style=None,
        )
    )
    st.caption(f"{len(filtered_events)} events at {len(markers)} venues")

    with card("Venues"):
        for marker in markers:
            with st.expander(f"{marker['venue_name']} ({marker['prefecture']}) - {marker['event_count']} events"):
                st.write(marker["address"])
                st.dataframe(
                    pd.DataFrame(marker["events"])[["conference_name", "name", "start_date", "end_date", "is_hybrid"]],
                    hide_index=True,
                    use_container_width=True,
                )


def render_events_page():
    ordered = filtered_events.sort_values("start_date", ascending=False, kind="stable")
    table = pd.DataFrame(event_records(ordered))
    render_page_header("Events", "Home / List", filters, export_df=table, export_name="events.csv")
    st.caption(f"{len(filtered_events)} of {len(all_events)} events")
    if table.empty:
        st.info("No events match the current filters.")
        return
    st.dataframe(
        table[["name", "start_date", "end_date", "venue_name", "prefecture", "is_hybrid", "event_url"]],
        hide_index=True,
        use_container_width=True,
        column_config={"event_url": st.column_config.LinkColumn("URL")},
    )


def render_dashboard_page():
    render_page_header("Dashboard", "Home / Dashboard", filters)
    dashboard = compute_dashboard(filters, ctx)
    summary = dashboard["summary"]
    cols = st.columns(4)
    cols[0].metric("Conferences", summary["filtered_conferences"], help=f"{summary['total_conferences']} in total")
    cols[1].metric("Events", summary["filtered_events"], help=f"{summary['total_events']} in total")
    cols[2].metric("Venues", summary["active_venues"])
    cols[3].metric("Prefectures", len(dashboard["events_per_prefecture"]))

    charts = dashboard["charts"]
    if not charts:
        st.info("No events match the current filters.")
        return
    row1 = st.columns(2)
    with row1[0]:
        with card("Events per year"):
            st.vega_lite_chart(charts["events_per_year"], use_container_width=True)
    with row1[1]:
        with card("Events per prefecture (top 10)"):
            st.vega_lite_chart(charts["events_per_prefecture"], use_container_width=True)
    row2 = st.columns(2)
    with row2[0]:
        with card("Categories"):
            if "category_distribution" in charts:
                st.vega_lite_chart(charts["category_distribution"], use_container_width=True)
    with row2[1]:
        with card("Languages"):
            if "language_distribution" in charts:
                st.vega_lite_chart(charts["language_distribution"], use_container_width=True)
            else:
                st.info("No language tags for these events.")

    concentration = compute_concentration(filters, ctx)
    with card("Tokyo concentration"):
        cols = st.columns(3)
        cols[0].metric("Share in Tokyo", f"{concentration['percentage']:.1f}%", help=LEVEL_LABELS[concentration["level"]])
        cols[1].metric("Tokyo / elsewhere", f"{concentration['reference_count']} / {concentration['other_count']}")
        cols[2].metric(f"Last {concentration['recent_years']} years avg", f"{concentration['recent_average']:.1f}%")
        if "concentration_trend" in concentration["charts"]:
            st.vega_lite_chart(concentration["charts"]["concentration_trend"], use_container_width=True)

    with card("Seasonality"):
        seasonality = compute_seasonality(filters, ctx)
        if "seasonality_heatmap" in seasonality["charts"]:
            st.vega_lite_chart(seasonality["charts"]["seasonality_heatmap"], use_container_width=True)
            st.caption(f"Busiest month holds {seasonality['max_count']} events")

    with card("Venue ranking"):
        c1, c2 = st.columns(2)
        count_mode = c1.radio("Count", ["events", "conferences"], horizontal=True, format_func=str.title)
        top_n = c2.slider("Top N", min_value=5, max_value=30, value=10, step=5)
        ranking = compute_venue_ranking(filters, ctx, count_mode=count_mode, top_n=top_n)
        if "venue_ranking" in ranking["charts"]:
            st.vega_lite_chart(ranking["charts"]["venue_ranking"], use_container_width=True)

    with card("Regional expansion"):
        expansion = compute_expansion(filters, ctx)
        if not expansion["conferences"]:
            st.info("No conference has been held in more than one prefecture.")
        else:
            names = {c["conference_id"]: f"{c['conference_name']} ({c['total_prefectures']} prefectures)" for c in expansion["conferences"]}
            picked = st.selectbox("Conference", options=list(names), format_func=names.get)
            expansion = compute_expansion(filters, ctx, conference_id=picked)
            st.vega_lite_chart(expansion["charts"]["expansion_timeline"], use_container_width=True)
            st.dataframe(
                pd.DataFrame(expansion["selected"]["expansion"]).assign(prefectures=lambda d: d["prefectures"].str.join(", ")),
                hide_index=True,
                use_container_width=True,
            )


def render_conferences_page():
    render_page_header("Conferences", "Home / Conferences", filters)
    index = compute_conference_index(ctx)["conferences"]
    if not index:
        st.info("No conferences loaded.")
        return
    labels = {c["id"]: f"{c['name']} ({c['stats']['year_range']})" for c in index}
    picked = st.selectbox("Conference", options=list(labels), format_func=labels.get)
    detail = conference_history(picked, ctx["events"], ctx["conferences"])
    if detail is None:
        st.warning("Conference not found.")
        return

    conf = detail["conference"]
    stats = detail["stats"]
    st.subheader(conf["name"])
    if conf["description"]:
        st.write(conf["description"])
    st.markdown(" ".join(f"`{tag}`" for tag in conf["category"] + conf["programming_languages"]))
    if conf["website"]:
        st.markdown(f"[Website]({conf['website']})")

    cols = st.columns(3)
    cols[0].metric("Events", stats["total_events"])
    cols[1].metric("Years", stats["year_range"])
    cols[2].metric("Prefectures", stats["prefectures"])

    with card("History"):
        history = pd.DataFrame(detail["events"])
        if history.empty:
            st.info("No events recorded yet.")
        else:
            st.dataframe(
                history[["year", "name", "date_label", "venue_name", "prefecture", "is_hybrid"]],
                hide_index=True,
                use_container_width=True,
            )


if current_page == "Map":
    render_map_page()
elif current_page == "List":
    render_events_page()
elif current_page == "Dashboard":
    render_dashboard_page()
else:
    render_conferences_page()
