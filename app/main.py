"""
Streamlit Frontend for Ledger Assistant

A chat-first personal ledger: the user types, photographs a receipt,
or records a voice note, and the assistant turns it into a ledger entry.

DESIGN PRINCIPLES:
1. The chat is the only way in
2. The ledger is visible and reacts immediately
3. Failures are short notices, never a crash
4. Everything the user saves can be exported and restored

The UI is a thin shell: every decision lives in ledger_assistant.
"""

import asyncio
from datetime import date

import streamlit as st

from ledger_assistant.audit import configure_logging
from ledger_assistant.config import get_settings, validate_all_settings
from ledger_assistant.ledger import ImportValidationError, PersistenceError
from ledger_assistant.models.notification import NotificationCenter, NotificationLevel
from ledger_assistant.models.session import SessionContext
from ledger_assistant.models.transaction import TransactionType
from ledger_assistant.orchestrator import (
    create_app_components,
    describe_submission,
    update_persona,
)
from ledger_assistant.pipeline import InputError
from ledger_assistant.queries import (
    day_label,
    expenses_by_category,
    filter_transactions,
    group_by_day,
    summarize,
)


# Page configuration
st.set_page_config(
    page_title="Ledger Assistant",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def sign_in(email: str):
    """Create the per-user components and load the ledger."""
    email = email.strip().lower()
    context = SessionContext(
        user_id=email,
        display_name=email.split("@")[0] or "User",
    )
    notifications = NotificationCenter()
    session, submission_flow, backup_flow, _ = create_app_components(
        context,
        use_storage=True,
        notifier=notifications,
    )
    run_async(session.start())

    st.session_state.session = session
    st.session_state.submission_flow = submission_flow
    st.session_state.backup_flow = backup_flow
    st.session_state.notifications = notifications
    st.session_state.chat = [{
        "role": "assistant",
        "text": session.greeting(get_settings().app.assistant_name),
    }]


def sign_out():
    run_async(st.session_state.session.end())
    for key in ("session", "submission_flow", "backup_flow", "notifications", "chat"):
        st.session_state.pop(key, None)


def show_notifications():
    for note in st.session_state.notifications.drain():
        if note.level == NotificationLevel.ERROR:
            st.error(note.message)
        elif note.level == NotificationLevel.WARNING:
            st.warning(note.message)
        else:
            st.info(note.message)


def render_login():
    st.title("💰 Ledger Assistant")
    with st.form("login"):
        email = st.text_input("Email")
        if st.form_submit_button("Sign in") and email.strip():
            sign_in(email)
            st.rerun()


def render_chat():
    st.subheader("Chat")

    for message in st.session_state.chat:
        with st.chat_message(message["role"]):
            st.markdown(message["text"])

    with st.expander("📷 Receipt / 🎤 voice note"):
        image = st.file_uploader("Receipt photo", type=["jpg", "jpeg", "png", "webp"])
        audio = st.audio_input("Voice note")
        send_media = st.button("Send attachment")

    text = st.chat_input("Spent 30 on bakery today...")

    if not (text or send_media):
        return

    image_bytes = image.getvalue() if image and send_media else None
    audio_bytes = audio.getvalue() if audio and send_media else None

    st.session_state.chat.append({
        "role": "user",
        "text": describe_submission(text, image_bytes is not None, audio_bytes is not None),
    })

    flow = st.session_state.submission_flow
    try:
        with st.spinner("Thinking..."):
            result = run_async(flow.submit(
                text=text,
                image_bytes=image_bytes,
                audio_bytes=audio_bytes,
                image_mime_type=image.type if image else "image/jpeg",
                audio_mime_type=audio.type if audio else "audio/wav",
                # Each run_async call has its own loop; the save must finish in it
                wait_for_save=True,
            ))
        st.session_state.chat.append({"role": "assistant", "text": result.reply})
    except InputError as e:
        st.session_state.chat.pop()
        st.warning(str(e))
        return

    st.rerun()


def render_ledger():
    session = st.session_state.session
    today = date.today()

    col1, col2, col3 = st.columns(3)
    with col1:
        year = st.number_input("Year", value=today.year, step=1)
    with col2:
        month = st.selectbox("Month", options=list(range(1, 13)), index=today.month - 1)
    with col3:
        type_filter = st.selectbox(
            "Show",
            options=[None, TransactionType.INCOME, TransactionType.EXPENSE],
            format_func=lambda x: "All" if x is None else x.value.title(),
        )

    month_transactions = filter_transactions(
        session.ledger.snapshot(), year=int(year), month=month
    )
    summary = summarize(month_transactions)

    col1, col2, col3 = st.columns(3)
    col1.metric("Balance", f"{summary.balance:.2f}")
    col2.metric("Income", f"{summary.income:.2f}")
    col3.metric("Expense", f"{summary.expense:.2f}")

    categories = expenses_by_category(month_transactions)
    if categories:
        st.bar_chart({c.category: float(c.total) for c in categories})

    visible = filter_transactions(month_transactions, type=type_filter)
    if not visible:
        st.info("No records this month. Tell the assistant to get started!")
        return

    for day, transactions in group_by_day(visible):
        st.markdown(f"**{day_label(day, today)}**")
        for tx in transactions:
            col1, col2, col3 = st.columns([6, 2, 1])
            col1.markdown(f"{tx.description}  \n_{tx.category}_")
            sign = "+" if tx.type == TransactionType.INCOME else "-"
            col2.markdown(f"{sign} {tx.amount:.2f}")
            if col3.button("🗑️", key=f"delete-{tx.id}"):
                try:
                    run_async(session.sync.commit_remove(tx.id))
                except PersistenceError:
                    pass  # restored and notified by the sync layer
                st.rerun()


def record_export():
    run_async(st.session_state.backup_flow.record_export())


def render_settings():
    session = st.session_state.session
    backup_flow = st.session_state.backup_flow

    st.sidebar.markdown("### Assistant personality")
    persona = st.sidebar.text_area(
        "Personality",
        value=session.settings.persona_text,
        placeholder="e.g. Be strict and sarcastic about spending",
    )
    if persona != session.settings.persona_text:
        async def save():
            await update_persona(session, persona)
        run_async(save())

    st.sidebar.markdown("### Backup")
    file_name, content = backup_flow.build_export()
    st.sidebar.download_button(
        "Export data",
        data=content,
        file_name=file_name,
        mime="application/json",
        on_click=record_export,
    )

    uploaded = st.sidebar.file_uploader("Restore from backup", type=["json"])
    if uploaded and st.sidebar.button("Replace current data"):
        try:
            count = run_async(backup_flow.import_backup(uploaded.getvalue().decode("utf-8")))
            st.sidebar.success(f"Restored {count} records.")
        except (ImportValidationError, UnicodeDecodeError):
            st.sidebar.error("Invalid file.")
        except PersistenceError:
            pass  # notified by the sync layer

    st.sidebar.markdown("---")
    status = validate_all_settings()
    for name, key in [("Gemini (AI)", "gemini"), ("Google Sheets (Storage)", "google_sheets")]:
        if status.get(key, False):
            st.sidebar.success(f"✅ {name}")
        else:
            st.sidebar.warning(f"⚠️ {name} - {status.get(f'{key}_error', 'Not configured')}")

    if st.sidebar.button("Sign out"):
        sign_out()
        st.rerun()


def main():
    """Main application entry point."""
    configure_logging(get_settings().app.log_level)

    if "session" not in st.session_state:
        render_login()
        return

    st.sidebar.title("💰 Ledger Assistant")
    st.sidebar.caption(st.session_state.session.context.display_name)
    render_settings()
    show_notifications()

    chat_col, ledger_col = st.columns([1, 1])
    with chat_col:
        render_chat()
    with ledger_col:
        render_ledger()


if __name__ == "__main__":
    main()
