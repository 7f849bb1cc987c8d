# ui.py
# Streamlit front end: upload 2-5 photos, send them to the relay, render the roast.
# Run with: streamlit run moments_roast/ui.py

import html
import time
from concurrent.futures import ThreadPoolExecutor

import streamlit as st

from moments_roast.client import (
    AnalysisFailed, ClientValidationError, ProgressStages, RelayClient, UploadSession,
)
from moments_roast.schemas import AnalysisResult, ImageUpload
from moments_roast.settings import get_settings

UNKNOWN_LEVEL = "Unknown species"
NO_WARNING = "No risk warning yet"

# ---------- Page + CSS ----------
st.set_page_config(page_title="AI Roast Lab", page_icon="🍉", layout="centered")

st.markdown("""
<style>
.meter { border: 2px dashed #2d3436; border-radius: 12px; height: 22px; overflow: hidden; }
.meter-fill { background: #ff9f43; height: 100%; }
.danger-score { font-size: 40px; font-weight: 800; }
.badge { display: inline-block; padding: 4px 12px; border-radius: 16px; background: #ffeaa7; font-weight: 700; }
.roast { font-style: italic; opacity: 0.85; }
</style>
""", unsafe_allow_html=True)

# ---------- State ----------
if "session" not in st.session_state:
    st.session_state["session"] = UploadSession()
if "uploader_key" not in st.session_state:
    st.session_state["uploader_key"] = 0

session: UploadSession = st.session_state["session"]
client = RelayClient(get_settings())


def reset() -> None:
    session.reset()
    # New key -> fresh (empty) uploader widget
    st.session_state["uploader_key"] += 1


# ---------- UI helpers ----------
def run_with_progress() -> None:
    """Submit in a worker thread and tick the cosmetic steps until it settles."""
    stages = ProgressStages()
    placeholder = st.empty()
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(session.submit, client)
        while not future.done():
            active = stages.current()
            placeholder.markdown("\n".join(
                f"{'✅' if i < active else '⏳' if i == active else '▫️'} {label}"
                for i, label in enumerate(ProgressStages.LABELS)
            ))
            time.sleep(0.5)
    placeholder.empty()

    try:
        future.result()
    except ClientValidationError as e:
        st.error(str(e))
    except AnalysisFailed as e:
        st.error(e.user_message)


def show_result(result: AnalysisResult) -> None:
    st.header("✨ Roast Report ✨")

    danger_index = result.danger_index or 0.0
    with st.container(border=True):
        st.subheader("💥 Danger index")
        st.markdown(
            f'<div class="meter"><div class="meter-fill" style="width: {danger_index * 20}%"></div></div>'
            f'<span class="danger-score">{danger_index:.1f}</span> '
            f'<span class="badge">{html.escape(result.danger_level or UNKNOWN_LEVEL)}</span>',
            unsafe_allow_html=True,
        )
        st.write(result.warning_message or NO_WARNING)

    with st.container(border=True):
        st.subheader("🚩 Red flags")
        for item in result.toxic_traits or []:
            st.markdown(f"**{item.trait or ''}**")
            st.markdown(f'<div class="roast">“{html.escape(item.roast or "")}”</div>', unsafe_allow_html=True)

    with st.container(border=True):
        st.subheader("🧩 MBTI wild guess")
        mbti = result.mbti_guess
        st.markdown(f'<span class="badge">{html.escape((mbti.type if mbti else None) or "")}</span>', unsafe_allow_html=True)
        st.write((mbti.roast if mbti else None) or "")

    with st.container(border=True):
        st.subheader("👗 Outfit review")
        st.write(result.appearance_roast or "")

    with st.container(border=True):
        st.subheader("🆘 Only your best friend would tell you")
        st.write(result.survival_guide or "")

    st.button("Try someone else 🔄", on_click=reset, use_container_width=True)


# ---------- Views ----------
if session.result is None:
    st.title("AI Roast Lab")
    st.caption("Funny, savage and uncannily accurate")
    st.info("⚠️ Just for fun. Photos are discarded after analysis, and the AI has a sharp tongue.")

    uploaded = st.file_uploader(
        "📸 Upload 2-5 photos of the person",
        type=["png", "jpg", "jpeg", "webp", "gif", "bmp"],
        accept_multiple_files=True,
        key=f"uploader_{st.session_state['uploader_key']}",
    )

    session.images = []
    for f in uploaded or []:
        session.add(ImageUpload(filename=f.name, content_type=f.type or "image/jpeg", data=f.getvalue()))

    if uploaded and len(uploaded) > session.max_images:
        st.warning(f"Only the first {session.max_images} photos will be used.")
    if session.images:
        st.write(f"Collected {len(session.images)} pieces of evidence 🕵️")

    if st.button("Start the roast 🍉", type="primary", use_container_width=True,
                 disabled=not session.can_submit()):
        run_with_progress()
        if session.result is not None:
            st.rerun()
else:
    show_result(session.result)
