# ui/app.py
"""
Streamlit workspace for the research agent.
Run with: streamlit run ui/app.py
"""

import asyncio

import streamlit as st

from utils.config import get_settings
from workspace.attachments import AttachmentTracker, UploadKeys
from workspace.export import format_file_size, format_score
from workspace.research import FAILURE_MESSAGE, ResearchSession
from workspace.state import WORKFLOW_STEPS
from workspace.transport import AsyncProxyClient, ProxyClient

settings = get_settings()

# Page config
st.set_page_config(
    page_title="Research Agent",
    page_icon="🔬",
    layout="wide"
)

# Custom CSS for clean look
st.markdown("""
<style>
    .main-header {
        text-align: center;
        padding: 1rem 0;
    }
    .main-header h1 {
        background: linear-gradient(135deg, #f59e0b 0%, #fcd34d 100%);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        font-size: 2.5rem;
    }
    .stage-row {
        padding: 0.6rem 1rem;
        border-radius: 8px;
        margin: 0.35rem 0;
        border-left: 3px solid #78350f;
    }
    .stage-active { border-left-color: #f59e0b; background: rgba(245, 158, 11, 0.08); }
    .stage-completed { border-left-color: #d97706; }
    .step-current { font-weight: 700; }
</style>
""", unsafe_allow_html=True)

STAGE_ICONS = {"pending": "⏳", "active": "🔄", "completed": "✅"}
EXAMPLES = ["AI observability trends", "RAG best practices", "LLM evaluation methods"]


def run(coro):
    """Drive one workspace coroutine to completion inside this script run."""
    return asyncio.run(coro)


def current_identity():
    """(user_id, email) of the signed-in user, or None when signed out."""
    if not settings.require_login:
        return settings.dev_user_id, settings.dev_user_email
    if not st.user.is_logged_in:
        return None
    email = st.user.get("email")
    return st.user.get("sub") or email, email


def init_session_state(user_id, email):
    """Create this browser session's workspace objects (once per user)."""
    if st.session_state.get("workspace_user") == user_id:
        return

    transport = AsyncProxyClient(ProxyClient.from_settings(settings, user_id=user_id, email=email))
    tracker = AttachmentTracker(transport)
    research = ResearchSession(
        transport,
        dwell_seconds=settings.stage_dwell_seconds,
        settle_seconds=settings.stage_settle_seconds,
        document_ids_provider=lambda: tracker.ready_document_ids,
    )

    st.session_state.workspace_user = user_id
    st.session_state.tracker = tracker
    st.session_state.research = research
    st.session_state.upload_keys = UploadKeys()
    st.session_state.uploader_generation = 0
    st.session_state.docs_loaded = False


def render_header():
    st.markdown("""
    <div class="main-header">
        <h1>🔬 Research Agent</h1>
        <p style="color: #a8a29e;">Plan → Search → Analyze → Synthesize</p>
    </div>
    """, unsafe_allow_html=True)


def render_signed_out():
    render_header()
    st.info("Sign in to upload documents and start research runs.")
    st.button("Sign in", type="primary", on_click=st.login)


def render_steps(research: ResearchSession):
    """Step indicator across the top of the workspace."""
    labels = [step for step in WORKFLOW_STEPS if step != "idle"]
    st.markdown(" → ".join(
        f"**{label.title()}**" if research.workflow_step == label else label.title()
        for label in labels
    ))


def render_pipeline(container, research: ResearchSession):
    """Draw the stage list into a placeholder (called on every state change)."""
    with container.container():
        if not (research.is_running or research.result):
            return
        st.markdown("#### 📋 Research Pipeline")
        for index, stage in enumerate(research.stages, start=1):
            details = []
            if stage.latency is not None:
                details.append(f"{stage.latency:.2f}s")
            if stage.score is not None:
                details.append(f"⭐ {format_score(stage.score)}")
            st.markdown(
                f"<div class='stage-row stage-{stage.status}'>"
                f"{STAGE_ICONS[stage.status]} <b>{index}. {stage.name}</b> "
                f"<span style='color:#a8a29e'>{stage.description}</span> "
                f"<span style='float:right'>{' · '.join(details)}</span></div>",
                unsafe_allow_html=True
            )
            if stage.status == "completed" and stage.content:
                with st.expander(f"{stage.name} details"):
                    st.markdown(stage.content)


def upload_key(uploaded_file) -> str:
    return getattr(uploaded_file, "file_id", None) or uploaded_file.name


def forget_removed_uploads(tracker: AttachmentTracker):
    """Let removed files be picked again: forget their keys and reset the picker."""
    if st.session_state.upload_keys.forget_untracked(tracker):
        st.session_state.uploader_generation += 1


def render_sidebar(tracker: AttachmentTracker, research: ResearchSession, user_label: str):
    with st.sidebar:
        st.markdown(f"**{user_label}**")
        if settings.require_login:
            st.button("Sign out", on_click=st.logout)

        research.use_chat_history = st.toggle("Chat history", value=research.use_chat_history)

        st.markdown("### 📎 Attachments")
        files = st.file_uploader(
            "Attach documents",
            accept_multiple_files=True,
            label_visibility="collapsed",
            key=f"uploader_{st.session_state.uploader_generation}"
        ) or []
        selected = {upload_key(f): f for f in files}
        upload_keys = st.session_state.upload_keys
        upload_keys.retain(selected)
        new_keys = upload_keys.new_keys(selected)
        if new_keys:
            with st.spinner(f"Uploading {len(new_keys)} file(s)..."):
                attached = run(asyncio.gather(*(
                    tracker.attach(selected[key].name, selected[key].getvalue(), selected[key].type)
                    for key in new_keys
                )))
            for key, attachment in zip(new_keys, attached):
                if attachment is not None:
                    upload_keys.record(key, attachment.client_id)

        for attachment in tracker.attachments:
            col1, col2 = st.columns([5, 1])
            with col1:
                if attachment.status == "error":
                    st.markdown(f"❌ {attachment.filename}")
                    st.caption(attachment.error_message)
                elif attachment.status == "uploading":
                    st.markdown(f"⏳ {attachment.filename}")
                else:
                    st.markdown(f"📄 {attachment.filename}")
            with col2:
                if st.button("✕", key=f"remove_{attachment.client_id}"):
                    run(tracker.remove(attachment.client_id, attachment.document_id))
                    forget_removed_uploads(tracker)
                    st.rerun()

        ready = len(tracker.ready_document_ids)
        st.caption(f"{ready} docs ready" if ready else "No documents attached")

        st.markdown("### 📚 Your documents")
        if st.button("Refresh", key="refresh_documents"):
            run(tracker.refresh_documents())

        if not tracker.documents:
            st.caption("No documents uploaded yet.")
        for document in tracker.documents:
            col1, col2 = st.columns([5, 1])
            with col1:
                st.markdown(f"**{document.filename or document.id}**")
                meta = [format_file_size(document.file_size)]
                if document.num_chunks is not None:
                    meta.append(f"{document.num_chunks} chunks")
                if document.status:
                    meta.append(document.status)
                st.caption(" · ".join(meta))
            with col2:
                if st.button("🗑", key=f"delete_{document.id}"):
                    run(tracker.delete_document(document.id))
                    forget_removed_uploads(tracker)
                    st.rerun()


def render_result(research: ResearchSession):
    result = research.result

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Latency", f"{result.total_latency:.2f}s")
    with col2:
        st.metric("Average Score", f"{result.average_score:.1f}/10")
    with col3:
        st.metric("Sources", len(result.sources))

    if result.trace_url:
        st.link_button("Open trace", result.trace_url)

    answer_tab, sources_tab, metrics_tab = st.tabs(["Answer", "Sources", "Metrics"])

    with answer_tab:
        st.markdown(result.answer)
        st.download_button(
            "📥 Export as Markdown",
            research.export_markdown(),
            file_name=research.export_filename(),
            mime="text/markdown"
        )

    with sources_tab:
        if not result.sources:
            st.caption("No sources returned.")
        for source in result.sources:
            st.markdown(f"**[{source.title or source.url}]({source.url})**")
            if source.snippet:
                st.caption(source.snippet)
            tags = []
            if source.source_type:
                tags.append(source.source_type)
            if source.confidence is not None:
                tags.append(f"Confidence: {round(source.confidence * 100)}%")
            if source.domain:
                tags.append(source.domain)
            if tags:
                st.caption(" · ".join(tags))
            if source.reason:
                st.markdown(f"> {source.reason}")

    with metrics_tab:
        for metric in result.metrics:
            st.markdown(f"**{metric.step.title()} Metrics** — {(metric.latency or 0.0):.2f}s")
            if metric.score is not None:
                st.progress(min(max(metric.score / 10, 0.0), 1.0), text=f"{format_score(metric.score)}/10")
            extras = []
            if metric.num_sources is not None:
                extras.append(f"Sources: {metric.num_sources}")
            if metric.avg_confidence is not None:
                extras.append(f"Avg confidence: {round(metric.avg_confidence * 100)}%")
            if extras:
                st.caption(" · ".join(extras))
            if metric.reasoning:
                st.caption(metric.reasoning)


# === Page ===

identity = current_identity()
if identity is None:
    render_signed_out()
    st.stop()

user_id, email = identity
init_session_state(user_id, email)
tracker: AttachmentTracker = st.session_state.tracker
research: ResearchSession = st.session_state.research

if not st.session_state.docs_loaded:
    run(tracker.refresh_documents())
    st.session_state.docs_loaded = True

render_sidebar(tracker, research, email or user_id or "Signed in")
render_header()
render_steps(research)

# Hero / follow-up prompt (Ctrl+Enter submits the form)
with st.form("research_form"):
    question = st.text_area(
        "Research Query",
        value=research.question,
        placeholder="Explore any topic in depth...",
        label_visibility="collapsed",
        height=140
    )
    submitted = st.form_submit_button(
        "🔍 Initiate Research" if not research.result else "🔍 Ask a follow-up",
        type="primary"
    )

chosen = None
if submitted:
    chosen = question
elif not research.result:
    st.markdown("**Try asking:**")
    cols = st.columns(len(EXAMPLES))
    for i, example in enumerate(EXAMPLES):
        with cols[i]:
            if st.button(example, key=f"example_{i}"):
                chosen = example

pipeline = st.empty()

if chosen is not None:
    if not chosen.strip():
        st.warning("Enter a research question first.")
    else:
        research.on_change = lambda: render_pipeline(pipeline, research)
        research.on_failure = lambda message: st.error(f"{FAILURE_MESSAGE}\n\n{message}")
        run(research.submit(chosen))
        research.on_change = None
        research.on_failure = None

render_pipeline(pipeline, research)

if research.result:
    st.markdown("---")
    render_result(research)

# Footer
st.markdown("---")
st.markdown(
    "<p style='text-align: center; color: #a8a29e; font-size: 0.85rem;'>"
    "Securely upload documents, run research, and keep chat history scoped to your workspace."
    "</p>",
    unsafe_allow_html=True
)
