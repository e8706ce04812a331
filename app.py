import logging

import streamlit as st

import dashboard
import db
import manual_payment
import payments
import storage
from config import configure_logging, get_config, get_db_path, warn_if_placeholders
from email_utils import check_email_service, format_amount
from errors import AuthError, GiftError, TransitionError, ValidationError
from init_db import init_db
from session import AuthSession
from wizard import STEPS, DonationWizard, Step

logger = logging.getLogger(__name__)

CATEGORIES = ["Education", "Health", "Environment", "Animal Welfare", "Elderly Care", "Disaster Relief", "Other"]


@st.cache_resource
def bootstrap():
    """Runs once per server process."""
    config = get_config()
    configure_logging(config.log_level)
    warn_if_placeholders(config)
    init_db(get_db_path(config))
    if config.mailer_url and not check_email_service():
        logger.warning("Email relay at %s is not answering; emails will fail", config.mailer_url)
    return config


st.set_page_config(page_title="Gift for Cause", layout="wide")

bootstrap()

st.markdown("""
<style>
    .main-header {
        background: linear-gradient(135deg, #2563eb 0%, #16a34a 100%);
        padding: 2rem;
        border-radius: 15px;
        margin-block-end: 2rem;
        text-align: center;
        color: white;
    }
    .main-header h1 {
        font-size: 2.5rem !important;
        margin: 0 !important;
        font-weight: 700;
    }
    .sidebar-user-info {
        padding: 1rem;
        border-radius: 15px;
        margin-block-end: 1rem;
        border: 1px solid rgba(0,0,0,0.1);
    }
    .stButton > button {
        border-radius: 25px;
        font-weight: 600;
    }
</style>
""", unsafe_allow_html=True)


# -------------------------------
# Helpers
# -------------------------------
def init_session_state():
    if "auth" not in st.session_state:
        # the access token rides in ?session= so a reload keeps the user signed in
        st.session_state.auth = AuthSession().start(st.query_params.get("session"))
    for k, v in {"page": "home", "selected_wishlist_id": None, "wizard": None,
                 "wishlist_draft": None, "flash": None}.items():
        if k not in st.session_state:
            st.session_state[k] = v


def go(page, **state):
    st.session_state.page = page
    for k, v in state.items():
        st.session_state[k] = v
    st.rerun()


def current_user():
    return st.session_state.auth.user


def show_flash():
    if st.session_state.flash:
        st.success(st.session_state.flash)
        st.session_state.flash = None


def wishlist_card(w, key_prefix):
    with st.container(border=True):
        if w.image:
            st.image(w.image, use_container_width=True)
        st.subheader(("🔥 " if w.urgent else "") + w.title)
        st.caption(f"by {w.ngo_name or 'Unknown NGO'}")
        if w.description:
            st.write(w.description)
        st.progress(min(int(w.progress), 100))
        st.write(f"{format_amount(w.raised_amount)} raised of {format_amount(w.target_amount)}")
        if st.button("🎁 View wishlist", key=f"{key_prefix}_{w.id}", use_container_width=True):
            go("wishlist", selected_wishlist_id=w.id)


init_session_state()

# password reset links land on ?page=reset_password&token=...
if st.query_params.get("page") == "reset_password":
    st.session_state.page = "reset_password"
    del st.query_params["page"]


def sync_session_param():
    token = st.session_state.auth.access_token
    if token:
        st.query_params["session"] = token
    elif "session" in st.query_params:
        del st.query_params["session"]


sync_session_param()

# -------------------------------
# Navigation
# -------------------------------
st.markdown("""
<div class="main-header">
    <h1>🎁 Gift for Cause</h1>
    <p>Fund exactly what verified NGOs need</p>
</div>
""", unsafe_allow_html=True)

user = current_user()
if user:
    st.sidebar.markdown(f"""
    <div class="sidebar-user-info">
        <div>👤 {user.name or 'Welcome!'}</div>
        <div>📧 {user.email}</div>
    </div>
    """, unsafe_allow_html=True)

st.sidebar.markdown("### 🚀 Navigation")
nav = [("Home", "home", "🏠"), ("Browse", "browse", "🔎"), ("NGO Partners", "ngos", "🤝"), ("Success Stories", "stories", "🌟")]
nav += [("Dashboard", "dashboard", "📊")] if user else [("Login", "login", "🔐"), ("Sign Up", "signup", "✨")]
for label, page, icon in nav:
    if st.sidebar.button(f"{icon} {label}", key=f"nav_{page}", use_container_width=True):
        go(page)

if user:
    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Logout", use_container_width=True):
        st.session_state.auth.logout()
        go("home", wizard=None)


# -------------------------------
# Public pages
# -------------------------------
def home_page():
    show_flash()
    st.header("Give the gifts NGOs actually need")
    st.markdown("Browse wishlists from verified NGOs, pick items and fund them directly.")
    try:
        stats = db.donation_stats()
        wishlists = db.list_published_wishlists()[:6]
    except Exception as e:
        logger.error("Error loading featured wishlists: %s", e)
        st.error(f"⚠️ Could not load wishlists: {e}")
        return
    col1, col2 = st.columns(2)
    col1.metric("💰 Raised so far", format_amount(stats["totalRaised"]))
    col2.metric("🎁 Donations", stats["totalDonations"])
    if not wishlists:
        st.info("No wishlists published yet.")
        return
    st.subheader("Featured wishlists")
    cols = st.columns(3)
    for i, w in enumerate(wishlists):
        with cols[i % 3]:
            wishlist_card(w, "home")


def browse_page():
    st.header("🔎 Browse wishlists")
    col1, col2 = st.columns([3, 1])
    with col1:
        query = st.text_input("Search", placeholder="Search by title or description")
    with col2:
        category = st.selectbox("Category", ["All"] + CATEGORIES)
    try:
        results = db.search_wishlists(query, None if category == "All" else category)
    except Exception as e:
        logger.error("Error searching wishlists: %s", e)
        st.error(f"⚠️ Search failed: {e}")
        return
    st.caption(f"{len(results)} wishlist(s)")
    cols = st.columns(3)
    for i, w in enumerate(results):
        with cols[i % 3]:
            wishlist_card(w, "browse")


def wishlist_page():
    wl_id = st.session_state.selected_wishlist_id
    try:
        wishlist = db.get_wishlist(wl_id) if wl_id else None
        items = db.list_items(wl_id) if wishlist else []
    except Exception as e:
        logger.error("Error loading wishlist %s: %s", wl_id, e)
        st.error(f"⚠️ Could not load wishlist: {e}")
        return
    if not wishlist:
        st.warning("Wishlist not found.")
        return

    if st.button("⬅️ Back to browse"):
        go("browse")
    st.header(wishlist.title)
    st.caption(f"by {wishlist.ngo_name}")
    if wishlist.description:
        st.write(wishlist.description)
    st.progress(min(int(wishlist.progress), 100))
    st.write(f"**{format_amount(wishlist.raised_amount)}** raised of {format_amount(wishlist.target_amount)}")
    if wishlist.remaining > 0:
        st.caption(f"{format_amount(wishlist.remaining)} still needed")

    st.subheader("Items")
    for item in items:
        with st.container(border=True):
            c1, c2 = st.columns([3, 1])
            with c1:
                st.markdown(f"**{item.name}**  \n{item.description or ''}")
                if item.rationale:
                    st.caption(f"Why: {item.rationale}")
            with c2:
                st.write(format_amount(item.price))
                st.caption("✅ Fully funded" if item.is_complete else f"{item.funded_qty}/{item.qty} funded")

    if st.button("🎁 Donate to this wishlist", use_container_width=True):
        go("donate", wizard=DonationWizard(wishlist, donor=current_user()))

    with st.expander("⚡ Quick demo payment for one item"):
        quick_payment_form(wishlist, items)


def quick_payment_form(wishlist, items):
    if not items:
        st.info("This wishlist has no items yet.")
        return
    user = current_user()
    with st.form(f"quick_pay_{wishlist.id}"):
        item = st.selectbox("Item", items, format_func=lambda i: f"{i.name} ({format_amount(i.price)})")
        method = st.radio("Payment method", payments.PAYMENT_METHODS, format_func=lambda m: f"{m['name']} ({m['currency']})")
        name = st.text_input("Your name", value=(user.name if user else "") or "")
        email = st.text_input("Your email", value=user.email if user else "")
        anonymous = st.checkbox("Donate anonymously")
        submitted = st.form_submit_button("💳 Pay now")
    if submitted:
        with st.spinner("Processing payment..."):
            result = payments.pay_and_record(
                user, wishlist.ngo_id, item.id, item.price, method["id"], name, email,
                anonymous=anonymous, wishlist_id=wishlist.id,
            )
        if result.success:
            st.success(f"✅ {result.message} (transaction {result.data['transaction_id']})")
        else:
            st.error(f"❌ {result.error}")


def ngos_page():
    st.header("🤝 NGO partners")
    query = st.text_input("Search NGOs", placeholder="Name or mission")
    try:
        ngos = db.search_ngos(query) if query else db.list_verified_ngos()
    except Exception as e:
        logger.error("Error loading NGOs: %s", e)
        st.error(f"⚠️ Could not load NGOs: {e}")
        return
    for ngo in ngos:
        with st.container(border=True):
            c1, c2 = st.columns([1, 4])
            with c1:
                if ngo.logo:
                    st.image(ngo.logo, width=80)
            with c2:
                st.subheader(f"{ngo.name} ✅")
                st.caption(ngo.category or "")
                st.write(ngo.mission or "")
                if ngo.website:
                    st.markdown(f"[Website]({ngo.website})")
            with st.expander("🏦 Donate directly to this NGO"):
                manual_donation_form(ngo)


def manual_donation_form(ngo):
    try:
        details = manual_payment.get_settlement_details(ngo.id)
    except Exception as e:
        logger.error("Error loading bank details for ngo %s: %s", ngo.id, e)
        st.error(f"⚠️ Could not load payment details: {e}")
        return
    if not details:
        st.info("This NGO has not shared payment details yet.")
        return
    show_settlement_details(details)
    user = current_user()
    with st.form(f"manual_donation_{ngo.id}"):
        amount = st.number_input("Amount (₹)", min_value=0.0, step=100.0)
        name = st.text_input("Your name", value=(user.name if user else "") or "")
        email = st.text_input("Your email", value=user.email if user else "")
        submitted = st.form_submit_button("✅ I have transferred the amount")
    if submitted:
        try:
            manual_payment.record_manual_donation(
                amount, name, email, ngo_id=ngo.id, donor_id=user.id if user else None,
            )
            st.success("🎉 Donation recorded successfully")
        except ValidationError as e:
            st.error(f"📝 {e}")
        except Exception as e:
            logger.error("Manual donation failed: %s", e)
            st.error(f"❌ {e}")


def show_settlement_details(details):
    if details.has_bank_account:
        st.markdown(
            f"**Account Holder:** {details.account_holder_name}  \n"
            f"**Account Number:** {details.account_number}  \n"
            f"**Bank Name:** {details.bank_name}  \n"
            f"**IFSC:** {details.ifsc_code}  \n"
            f"**Branch:** {details.branch_name}"
        )
    if details.upi_id:
        st.markdown(f"**UPI ID:** {details.upi_id}")
    if details.qr_code_url:
        st.image(details.qr_code_url, caption="Scan to pay", width=200)
    if details.donation_link:
        st.markdown(f"[Donate via the NGO's own page]({details.donation_link})")


def stories_page():
    st.header("🌟 Success stories")
    try:
        stories = db.list_approved_stories()
    except Exception as e:
        logger.error("Error loading stories: %s", e)
        st.error(f"⚠️ Could not load stories: {e}")
        return
    if not stories:
        st.info("No stories yet.")
    for s in stories:
        with st.container(border=True):
            st.subheader(s.title)
            st.caption(s.ngo_name or "")
            if s.media_url:
                st.image(s.media_url, use_container_width=True)
            st.write(s.story_text or "")
            if s.impact_metrics:
                st.info(f"📈 Impact: {s.impact_metrics}")


# -------------------------------
# Donation wizard
# -------------------------------
def donate_page():
    wizard = st.session_state.wizard
    if wizard is None:
        st.warning("Pick a wishlist to donate to first.")
        if st.button("🔎 Browse wishlists"):
            go("browse")
        return

    st.header(f"🎁 Donate to {wizard.wishlist.title}")
    st.progress(wizard.progress)
    st.caption(f"Step {STEPS.index(wizard.step) + 1} of 4")

    if wizard.step is Step.CONFIRMATION:
        donate_select_items(wizard)
    elif wizard.step is Step.DETAILS:
        donate_details(wizard)
    elif wizard.step is Step.PAYMENT:
        donate_payment(wizard)
    else:
        donate_success(wizard)


def wizard_nav(wizard, back=True, next_label="Next ➡️"):
    c1, c2 = st.columns(2)
    with c1:
        if back and st.button("⬅️ Back", use_container_width=True):
            wizard.prev_step()
            st.rerun()
    with c2:
        if next_label and st.button(next_label, use_container_width=True, disabled=not wizard.can_advance()):
            try:
                wizard.next_step()
                st.rerun()
            except TransitionError as e:
                st.error(f"⚠️ {e}")


def donate_select_items(wizard):
    try:
        items = db.list_items(wizard.wishlist.id)
    except Exception as e:
        logger.error("Error loading items: %s", e)
        st.error(f"⚠️ Could not load items: {e}")
        return
    st.subheader("Choose items to gift")
    for item in items:
        selected = wizard.is_selected(item.id)
        checked = st.checkbox(f"{item.name} ({format_amount(item.price)})", value=selected, key=f"sel_{item.id}")
        if checked != selected:
            wizard.toggle_item(item)
        if wizard.is_selected(item.id):
            entry = next(e for e in wizard.cart if e.id == item.id)
            qty = st.number_input("Quantity", min_value=1, value=entry.qty, step=1, key=f"qty_{item.id}")
            wizard.set_quantity(item.id, qty)
    st.markdown(f"### Total: {format_amount(wizard.total)}")
    wizard_nav(wizard, back=False)


def donate_details(wizard):
    st.subheader("Your details")
    wizard.donor_name = st.text_input("Full name", value=wizard.donor_name)
    wizard.donor_email = st.text_input("Email", value=wizard.donor_email)
    wizard.message = st.text_area("Message for the NGO (optional)", value=wizard.message)
    wizard.anonymous = st.checkbox("Donate anonymously", value=wizard.anonymous)
    wizard_nav(wizard)


def donate_payment(wizard):
    st.subheader("Payment")
    summary = wizard.summary()
    st.write(f"You are gifting **{summary['amount']}** to **{summary['ngo']}** for *{summary['wishlist']}*.")
    method = st.radio("How would you like to pay?", ["Bank transfer / UPI", "Demo card payment"])

    if method == "Bank transfer / UPI":
        try:
            details = manual_payment.get_settlement_details(wizard.wishlist.ngo_id)
        except Exception as e:
            logger.error("Error loading bank details: %s", e)
            details = None
            st.error(f"⚠️ Could not load payment details: {e}")
        if details:
            show_settlement_details(details)
        else:
            st.info("This NGO has not shared bank details yet.")
        label = "✅ I have completed the payment"
    else:
        gateway = st.selectbox("Gateway", list(payments.Gateway), format_func=lambda g: g.value.title())
        st.caption(f"Charged in {payments.gateway_config(gateway)['currency']} (demo mode, no real charge)")
        label = "💳 Pay and confirm"

    wizard_nav(wizard, next_label=None)
    if st.button(label, use_container_width=True):
        txn_id = None
        gateway_name = "manual"
        if method != "Bank transfer / UPI":
            with st.spinner("Processing payment..."):
                result = payments.mock_process(wizard.total, gateway)
            if not result.success:
                st.error(f"❌ {result.error}")
                return
            txn_id, gateway_name = result.data["transaction_id"], result.data["gateway"]
        try:
            outcome = wizard.confirm(gateway=gateway_name, txn_id=txn_id)
        except Exception as e:
            logger.error("Donation confirmation failed: %s", e)
            st.error(f"❌ Could not record your donation: {e}")
            return
        if not outcome.success:
            st.error(f"❌ {outcome.error}")
            return
        for w in outcome.warnings:
            st.toast(f"⚠️ {w}")
        st.rerun()


def donate_success(wizard):
    summary = wizard.summary()
    st.balloons()
    st.success(f"🎉 Thank you, {summary['donor']}!")
    st.write(f"Your gift of **{summary['amount']}** to **{summary['ngo']}** for *{summary['wishlist']}* has been recorded.")
    st.write(f"A confirmation will be sent to {summary['email']}.")
    for w in (wizard.outcome.warnings if wizard.outcome else []):
        st.warning(w)
    if st.button("🏠 Back to home"):
        go("home", wizard=None)


# -------------------------------
# Auth pages
# -------------------------------
def login_page():
    st.subheader("🔐 Welcome back!")
    with st.form("login"):
        email = st.text_input("📧 Email Address")
        password = st.text_input("🔒 Password", type="password")
        submitted = st.form_submit_button("🚀 Sign In", use_container_width=True)
    if submitted:
        try:
            st.session_state.auth.login(email, password)
            go("dashboard", flash="🎉 Welcome back!")
        except AuthError as e:
            st.error(f"❌ {e}")
        except Exception as e:
            logger.error("Login failed: %s", e)
            st.error(f"❌ Login failed: {e}")
    if st.button("Forgot your password?"):
        go("reset_password")


def signup_page():
    st.subheader("✨ Join Gift for Cause")
    with st.form("signup"):
        name = st.text_input("Full name")
        email = st.text_input("📧 Email Address")
        password = st.text_input("🔒 Password", type="password")
        role = st.selectbox("I am a", ["donor", "ngo_owner"], format_func=lambda r: "Donor" if r == "donor" else "NGO")
        submitted = st.form_submit_button("🎉 Create Account", use_container_width=True)
    if submitted:
        if not name or not email or not password:
            st.error("📝 Please fill in all fields.")
            return
        try:
            result = st.session_state.auth.signup(email, password, name, role)
        except AuthError as e:
            st.error(f"⚠️ {e}")
            return
        if not result.success:
            st.error(f"⚠️ {result.error}")
            return
        if not result.data.get("welcome_email_sent"):
            st.toast("⚠️ Account created, but the welcome email could not be sent.")
        go("dashboard", flash="🎉 Account created successfully!")


def reset_password_page():
    st.subheader("🔑 Reset password")
    auth = st.session_state.auth
    token = st.query_params.get("token")
    if token and not st.session_state.get("recovered_token") == token:
        try:
            auth.recover(token)
            st.session_state.recovered_token = token
        except AuthError as e:
            st.error(f"❌ {e}")
            return

    if st.session_state.get("recovered_token") and current_user():
        with st.form("new_password"):
            pw1 = st.text_input("New password", type="password")
            pw2 = st.text_input("Confirm new password", type="password")
            submitted = st.form_submit_button("Update password")
        if submitted:
            if pw1 != pw2:
                st.error("New passwords do not match.")
                return
            try:
                auth.update_password(pw1)
            except AuthError as e:
                st.error(f"❌ {e}")
                return
            st.session_state.recovered_token = None
            st.query_params.pop("token", None)
            go("dashboard", flash="✅ Password updated.")
        return

    with st.form("reset_request"):
        email = st.text_input("📧 Your account email")
        submitted = st.form_submit_button("Send reset link")
    if submitted:
        if not email:
            st.error("Please provide your account email")
            return
        result = auth.reset_password(email)
        if result is not None and not result.success:
            logger.warning("Reset email failed: %s", result.error)
            st.toast("⚠️ We could not send the email right now.")
        st.success("📬 If that email has an account, a reset link is on its way.")


# -------------------------------
# Dashboards
# -------------------------------
def dashboard_page():
    user = current_user()
    show_flash()
    view = dashboard.resolve_view(user)
    if view is dashboard.View.LOGIN_REDIRECT:
        go("login")
    elif view is dashboard.View.UNKNOWN_ROLE:
        st.error(f"⚠️ Your account has an unrecognised role ({user.role!r}). Please contact support.")
    elif view is dashboard.View.ADMIN:
        admin_dashboard(user)
    elif view is dashboard.View.NGO:
        ngo_dashboard(user)
    else:
        donor_dashboard(user)


def donor_dashboard(user):
    st.header(f"👋 Hello {user.name or user.email}")
    try:
        summary = dashboard.donor_summary(user.id)
    except Exception as e:
        logger.error("Error fetching dashboard data: %s", e)
        st.error(f"⚠️ Could not load your donations: {e}")
        return
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Donated", format_amount(summary["total_donated"]))
    c2.metric("Donations Made", summary["donation_count"])
    c3.metric("NGOs Supported", summary["ngos_supported"])
    st.subheader("Recent donations")
    if not summary["recent"]:
        st.info("No donations yet. Browse wishlists to make your first gift!")
    for d in summary["recent"]:
        st.write(f"• {format_amount(d.amount)} to {d.ngo_name or 'an NGO'} ({d.wishlist_title or 'direct'}) - {d.status}")


def ngo_dashboard(user):
    try:
        ngo = db.get_ngo_by_owner(user.id)
    except Exception as e:
        logger.error("Error loading NGO: %s", e)
        st.error(f"⚠️ {e}")
        return
    if not ngo:
        ngo_registration_form(user)
        return

    st.header(f"🏢 {ngo.name}")
    if not ngo.verified:
        st.warning("⏳ Your NGO is awaiting verification. Upload your registration documents below.")
    try:
        summary = dashboard.ngo_summary(ngo.id)
    except Exception as e:
        logger.error("Error loading NGO dashboard: %s", e)
        st.error(f"⚠️ {e}")
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Raised", format_amount(summary["total_raised"]))
    c2.metric("This Month", format_amount(summary["raised_this_month"]))
    c3.metric("Published Wishlists", summary["published_wishlists"])
    c4.metric("Drafts", summary["draft_wishlists"])

    tabs = st.tabs(["Wishlists", "New wishlist", "Donations", "Bank details", "Stories", "Documents"])
    with tabs[0]:
        for w in summary["wishlists"]:
            with st.container(border=True):
                st.markdown(f"**{w.title}** ({w.status})")
                st.progress(summary["progress"][w.id])
                b1, b2 = st.columns(2)
                if w.status == "draft" and b1.button("🚀 Publish", key=f"pub_{w.id}"):
                    db.publish_wishlist(w.id)
                    st.rerun()
                if b2.button("🗑️ Delete", key=f"del_{w.id}"):
                    try:
                        dashboard.delete_wishlist(w.id)
                        st.toast("Wishlist deleted successfully.")
                        st.rerun()
                    except Exception as e:
                        logger.error("Failed to delete wishlist %s: %s", w.id, e)
                        st.error(f"❌ Failed to delete wishlist: {e}")
    with tabs[1]:
        wishlist_form(ngo)
    with tabs[2]:
        for d in summary["donations"]:
            donor = "Anonymous" if d.anonymous else (d.name or "Donor")
            st.write(f"• {format_amount(d.amount)} from {donor} ({d.wishlist_title or 'direct'})")
    with tabs[3]:
        bank_details_form(ngo, summary["bank_details"])
    with tabs[4]:
        story_form(ngo)
    with tabs[5]:
        for url in ngo.docs:
            st.markdown(f"- [{url.rsplit('/', 1)[-1]}]({url})")
        doc = st.file_uploader("Verification document", type=["pdf", "jpg", "jpeg", "png"], key="ngo_doc")
        if doc and st.button("📤 Upload document"):
            try:
                dashboard.upload_verification_document(ngo.id, doc)
                st.success("Document uploaded.")
            except GiftError as e:
                st.error(f"❌ {e}")


def ngo_registration_form(user):
    st.header("🏢 Register your NGO")
    with st.form("ngo_register"):
        name = st.text_input("Organisation name")
        reg_no = st.text_input("Registration number")
        category = st.selectbox("Category", CATEGORIES)
        mission = st.text_area("Mission")
        website = st.text_input("Website (optional)")
        contact_email = st.text_input("Contact email", value=user.email)
        logo = st.file_uploader("Logo", type=["png", "jpg", "jpeg"])
        submitted = st.form_submit_button("Register NGO")
    if submitted:
        if not name or not reg_no:
            st.error("📝 Name and registration number are required.")
            return
        try:
            ngo_id = db.create_ngo({
                "owner_id": user.id, "name": name, "reg_no": reg_no, "category": category,
                "mission": mission, "website": website, "contact_email": contact_email,
            })
            if logo:
                db.update_ngo(ngo_id, logo=storage.upload_file("ngo-logos", str(ngo_id), "logo", logo))
            go("dashboard", flash="🎉 NGO registered! An admin will verify it soon.")
        except Exception as e:
            logger.error("NGO registration failed: %s", e)
            st.error(f"❌ {e}")


def wishlist_form(ngo):
    draft = st.session_state.wishlist_draft
    if draft is None or draft.ngo_id != ngo.id:
        draft = dashboard.build_wishlist_draft(ngo.id)
        st.session_state.wishlist_draft = draft

    draft.title = st.text_input("Title", value=draft.title)
    draft.description = st.text_area("Description", value=draft.description)
    draft.urgent = st.checkbox("Urgent", value=draft.urgent)

    with st.form("add_item", clear_on_submit=True):
        c1, c2, c3 = st.columns([3, 1, 1])
        name = c1.text_input("Item name")
        price = c2.number_input("Price (₹)", min_value=0.0, step=50.0)
        qty = c3.number_input("Qty", min_value=1, step=1)
        rationale = st.text_input("Why is it needed?")
        if st.form_submit_button("➕ Add item") and name:
            draft.add_item(name, price, qty, rationale=rationale)

    for i, item in enumerate(draft.items):
        c1, c2 = st.columns([4, 1])
        c1.write(f"{item['name']}: {item['qty']} × {format_amount(item['price'])}")
        if c2.button("✖", key=f"rm_item_{i}"):
            draft.remove_item(i)
            st.rerun()

    st.write(f"**Target amount:** {format_amount(draft.target_amount)}")
    st.progress(int(draft.preview_progress))
    st.caption(f"Raised: {format_amount(draft.preview_raised)} / {format_amount(draft.target_amount)}")
    image = st.file_uploader("Cover image", type=["png", "jpg", "jpeg"], key="wl_image")

    c1, c2 = st.columns(2)
    for col, publish, label in ((c1, False, "💾 Save draft"), (c2, True, "🚀 Publish")):
        if col.button(label, use_container_width=True):
            try:
                dashboard.submit_wishlist_draft(draft, publish=publish, image_file=image)
                st.session_state.wishlist_draft = None
                go("dashboard", flash="✅ Wishlist saved.")
            except ValidationError as e:
                st.error(f"📝 {e}")
            except Exception as e:
                logger.error("Wishlist save failed: %s", e)
                st.error(f"❌ {e}")


def bank_details_form(ngo, current):
    if current:
        st.markdown("#### Current details")
        show_settlement_details(current)
    st.info("**Choose one option:** Fill either Bank Account Details OR UPI/QR Code details below")
    with st.form("bank_details"):
        c1, c2 = st.columns(2)
        form = manual_payment.BankDetailsForm(
            account_holder_name=c1.text_input("Account Holder Name"),
            account_number=c1.text_input("Account Number"),
            ifsc_code=c1.text_input("IFSC Code"),
            bank_name=c1.text_input("Bank Name"),
            branch_name=c1.text_input("Branch Name"),
            upi_id=c2.text_input("UPI ID"),
            qr_file=c2.file_uploader("QR Code Image", type=["png", "jpg", "jpeg"]),
            donation_link=c2.text_input("Donation link (optional)"),
            payment_methods=c2.text_area("Payment methods (JSON)", value="{}"),
        )
        submitted = st.form_submit_button("💾 Save bank details")
    if submitted:
        try:
            manual_payment.save_bank_details(ngo.id, form)
            st.success("Bank details saved successfully.")
        except ValidationError as e:
            st.error(f"📝 {e}")
        except Exception as e:
            logger.error("Saving bank details failed: %s", e)
            st.error(f"❌ {e}")


def story_form(ngo):
    for s in db.list_stories_by_ngo(ngo.id):
        st.write(f"• {s.title} ({'approved' if s.approved else 'pending review'})")
    with st.form("story", clear_on_submit=True):
        title = st.text_input("Story title")
        text = st.text_area("Story")
        impact = st.text_input("Impact (e.g. 120 children reached)")
        media = st.file_uploader("Photo", type=["png", "jpg", "jpeg"])
        submitted = st.form_submit_button("📨 Submit story")
    if submitted:
        try:
            dashboard.submit_success_story(ngo.id, title, text, impact, media)
            st.success("Story submitted for review.")
        except ValidationError as e:
            st.error(f"📝 {e}")
        except Exception as e:
            logger.error("Story submission failed: %s", e)
            st.error(f"❌ {e}")


def admin_dashboard(user):
    st.header("⚙️ Admin dashboard")
    try:
        summary = dashboard.admin_summary()
    except Exception as e:
        logger.error("Error loading admin data: %s", e)
        st.error(f"⚠️ {e}")
        return
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Raised", format_amount(summary["totalRaised"]))
    c2.metric("Donations", summary["totalDonations"])
    c3.metric("Pending NGOs", len(summary["pending_ngos"]))

    st.subheader("NGOs awaiting verification")
    for ngo in summary["pending_ngos"]:
        with st.container(border=True):
            st.markdown(f"**{ngo.name}** ({ngo.reg_no or 'no reg. no.'})")
            for url in ngo.docs:
                st.markdown(f"- [{url.rsplit('/', 1)[-1]}]({url})")
            if st.button("✅ Verify", key=f"verify_{ngo.id}"):
                try:
                    dashboard.verify_ngo_action(user, ngo.id)
                    st.toast("The NGO has been successfully verified.")
                    st.rerun()
                except Exception as e:
                    logger.error("Verify NGO failed: %s", e)
                    st.error(f"❌ {e}")

    st.subheader("Stories awaiting approval")
    for s in summary["pending_stories"]:
        with st.container(border=True):
            st.markdown(f"**{s.title}** by {s.ngo_name}")
            st.write(s.story_text or "")
            if st.button("✅ Approve", key=f"approve_{s.id}"):
                try:
                    dashboard.approve_story_action(user, s.id)
                    st.toast("Story approved.")
                    st.rerun()
                except Exception as e:
                    logger.error("Approve story failed: %s", e)
                    st.error(f"❌ {e}")

    st.subheader("Recent activity")
    for log in summary["audit_logs"]:
        st.caption(f"{log.created_at} - {log.user_name or 'system'} - {log.action} ({log.status}) {log.details}")


# -------------------------------
# Dispatch
# -------------------------------
pages = {
    "home": home_page,
    "browse": browse_page,
    "wishlist": wishlist_page,
    "donate": donate_page,
    "ngos": ngos_page,
    "stories": stories_page,
    "dashboard": dashboard_page,
    "login": login_page,
    "signup": signup_page,
    "reset_password": reset_password_page,
}

pg = st.session_state.page
if pg in ("login", "signup") and current_user():
    pg = "dashboard"
pages.get(pg, home_page)()
