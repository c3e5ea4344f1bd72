"""
Dashboard page served at "/".

A single self-contained HTML page with four tabs. It renders whatever
sections loaded, marks each failed section separately, and only shows the
full-page error (with retry) when /dashboard-data itself fails. The news
tab also offers a picker for summarizing any single registered source.
"""

from html import escape

from .feed_client import SOURCES


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>AI Financial Insight Dashboard</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            line-height: 1.6;
            color: #e5e7eb;
            background-color: #111827;
            max-width: 1100px;
            margin: 0 auto;
            padding: 20px;
        }
        .header h1 { margin: 0; color: #60a5fa; font-size: 26px; }
        .header p { margin: 4px 0 20px; color: #9ca3af; font-size: 14px; }
        .controls { display: flex; gap: 10px; margin-bottom: 16px; flex-wrap: wrap; }
        button {
            background: #2563eb; color: #fff; border: none; border-radius: 6px;
            padding: 8px 14px; cursor: pointer; font-size: 14px;
        }
        button:disabled { background: #4b5563; cursor: default; }
        .tabs { display: flex; gap: 6px; border-bottom: 1px solid #374151; margin-bottom: 16px; }
        .tab-button { background: transparent; color: #9ca3af; border-radius: 6px 6px 0 0; }
        .tab-button.active { background: #1f2937; color: #fff; }
        .section { background: #1f2937; border-radius: 8px; padding: 16px; margin-bottom: 16px; }
        .section h3 { margin-top: 0; }
        .card { border-bottom: 1px solid #374151; padding: 10px 0; }
        .card:last-child { border-bottom: none; }
        .card a { color: #93c5fd; text-decoration: none; font-weight: 600; }
        .badge { display: inline-block; padding: 2px 8px; border-radius: 4px; font-size: 11px; font-weight: 600; margin-left: 6px; }
        .badge-High { background: #7f1d1d; color: #fecaca; }
        .badge-Medium { background: #78350f; color: #fde68a; }
        .badge-Low { background: #14532d; color: #bbf7d0; }
        .unavailable { color: #9ca3af; font-style: italic; }
        .error-container { background: #7f1d1d; border-radius: 8px; padding: 20px; text-align: center; }
        .status { padding: 8px 12px; border-radius: 6px; margin-bottom: 12px; }
        .status.success { background: #14532d; }
        .status.error { background: #7f1d1d; }
        table { width: 100%; border-collapse: collapse; }
        td, th { text-align: left; padding: 6px; border-bottom: 1px solid #374151; }
        .scenario-bullish { border-left: 3px solid #22c55e; padding-left: 10px; }
        .scenario-bearish { border-left: 3px solid #ef4444; padding-left: 10px; }
        .loader { color: #9ca3af; }
        select { background: #1f2937; color: #e5e7eb; border: 1px solid #374151; border-radius: 6px; padding: 6px; }
    </style>
</head>
<body>
    <div class="header">
        <h1>AI Financial Insight Dashboard</h1>
        <p>News, economic calendar, figure tracker and crypto analysis by Gemini</p>
    </div>
    <div class="controls">
        <button id="refresh-button">Refresh now</button>
        <button id="push-button">Push to Discord</button>
    </div>
    <div id="status"></div>
    <div class="tabs">
        <button class="tab-button active" data-tab="news">📰 News</button>
        <button class="tab-button" data-tab="calendar">🗓️ Calendar</button>
        <button class="tab-button" data-tab="tracker">🦅 Trump Tracker</button>
        <button class="tab-button" data-tab="crypto">📈 Crypto Analysis</button>
    </div>
    <main id="content"><p class="loader">Loading...</p></main>
    <div id="feed-panel" class="section">
        <h3>Browse a source</h3>
        <select id="feed-select">
            <option value="">Select a news source</option>
__SOURCE_OPTIONS__
        </select>
        <div id="feed-results"></div>
    </div>

    <script>
    const REFRESH_MS = __REFRESH_MS__;
    const state = { data: null, error: null, loading: false, tab: 'news', runId: 0, feedRunId: 0 };
    let refreshTimer = null;

    const escapeHtml = (text) => String(text ?? '').replace(/[&<>"']/g, (c) => ({
        '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
    }[c]));
    const bold = (text) => escapeHtml(text).replace(/\\*\\*(.+?)\\*\\*/g, '<strong>$1</strong>');
    const flag = (code) => /^[A-Za-z]{2}$/.test(code || '')
        ? String.fromCodePoint(...code.toUpperCase().split('').map((c) => 0x1F1E6 + c.charCodeAt(0) - 65))
        : '🏳️';
    const unavailable = (what) => `<p class="unavailable">${what} could not be loaded.</p>`;

    function renderNews(title, articles) {
        const body = Array.isArray(articles) && articles.length
            ? articles.map((a) => `<div class="card">
                    <a href="${escapeHtml(a.link)}" target="_blank" rel="noopener">${escapeHtml(a.eventName)}</a>
                    <span class="badge badge-${escapeHtml(a.importance)}">${escapeHtml(a.importance)}</span>
                    <div>${escapeHtml(a.summary)}</div></div>`).join('')
            : unavailable(title);
        return `<section class="section"><h3>${title}</h3>${body}</section>`;
    }

    function renderCalendar(events) {
        if (!Array.isArray(events) || !events.length) {
            return `<section class="section"><h3>Economic Calendar</h3>${unavailable('The calendar')}</section>`;
        }
        const rows = events.map((e) => `<tr><td>${escapeHtml(e.date)}</td><td>${escapeHtml(e.time)}</td>
            <td>${flag(e.country)} ${escapeHtml(e.country)}</td><td>${escapeHtml(e.eventName)}</td></tr>`).join('');
        return `<section class="section"><h3>Economic Calendar (High, UTC+8)</h3>
            <table><tr><th>Date</th><th>Time</th><th>Country</th><th>Event</th></tr>${rows}</table></section>`;
    }

    function renderTracker(tracker) {
        const schedule = tracker && Array.isArray(tracker.schedule) ? tracker.schedule : [];
        const post = tracker && tracker.topPost ? tracker.topPost : { postContent: '', url: '' };
        const scheduleHtml = schedule.length
            ? schedule.map((i) => `<div class="card"><strong>${escapeHtml(i.date)} ${escapeHtml(i.time)}</strong>
                ${escapeHtml(i.eventDescription)}</div>`).join('')
            : '<p class="unavailable">No public schedule found.</p>';
        const postHtml = post.postContent
            ? `<div class="card">"${escapeHtml(post.postContent)}"<br><a href="${escapeHtml(post.url)}" target="_blank" rel="noopener">Source</a></div>`
            : '<p class="unavailable">No post found today.</p>';
        return `<section class="section"><h3>🎤 Schedule &amp; Speeches</h3>${scheduleHtml}</section>
            <section class="section"><h3>💬 Truth Social Latest Post</h3>${postHtml}</section>`;
    }

    function renderAnalysis(analysis, ticker) {
        if (!analysis || analysis.error) {
            const reason = analysis && analysis.message ? escapeHtml(analysis.message) : 'No data.';
            return `<section class="section"><h3>${ticker}</h3><p class="unavailable">${ticker} analysis could not be loaded. ${reason}</p></section>`;
        }
        const levels = analysis.keyLevels || {};
        const levelRow = (label, values) => Array.isArray(values) && values.length
            ? `<li><strong>${label}:</strong> ${values.map(bold).join(', ')}</li>` : '';
        const bias = analysis.currentBias
            ? `<p><strong>Current bias:</strong> ${escapeHtml(analysis.currentBias.sentiment)}
                ${analysis.currentBias.sentiment === 'Bullish' ? '📈' : '📉'} (${bold(analysis.currentBias.targetRange)})</p>` : '';
        return `<section class="section"><h3>${ticker} Technical Analysis</h3>
            <p class="unavailable">Source: ${escapeHtml(analysis.dataSource || 'AI aggregate analysis')} ·
                ${escapeHtml(new Date(analysis.analysisTimestamp).toLocaleString())}</p>
            ${bias}
            <p><strong>Market structure:</strong> ${bold(analysis.marketStructure)}</p>
            <ul>${levelRow('Liquidity pools', levels.liquidityPools)}${levelRow('Order blocks', levels.orderBlocks)}${levelRow('FVG', levels.fairValueGaps)}</ul>
            <div class="scenario-bullish"><h4>Bullish scenario 🐂</h4><p>${bold(analysis.bullishScenario)}</p></div>
            ${analysis.bearishScenario ? `<div class="scenario-bearish"><h4>Bearish scenario 🐻</h4><p>${bold(analysis.bearishScenario)}</p></div>` : ''}
            </section>`;
    }

    function render() {
        const content = document.getElementById('content');
        document.querySelectorAll('.tab-button').forEach((b) => b.classList.toggle('active', b.dataset.tab === state.tab));
        document.getElementById('refresh-button').disabled = state.loading;
        document.getElementById('refresh-button').textContent = state.loading ? 'Refreshing...' : 'Refresh now';
        document.getElementById('push-button').disabled = state.loading || !state.data;
        document.getElementById('feed-panel').style.display = state.tab === 'news' ? '' : 'none';

        if (state.loading && !state.data) {
            content.innerHTML = '<p class="loader">Loading...</p>';
            return;
        }
        if (state.error) {
            content.innerHTML = `<div class="error-container"><p>${escapeHtml(state.error)}</p>
                <button onclick="fetchDashboard()">Retry</button></div>`;
            return;
        }
        const d = state.data || {};
        const analyses = d.cryptoAnalysis || {};
        content.innerHTML = {
            news: () => renderNews('Financial News', d.financialNews) + renderNews('Crypto News', d.cryptoNews),
            calendar: () => renderCalendar(d.calendar),
            tracker: () => renderTracker(d.trumpTracker),
            crypto: () => renderAnalysis(analyses.btc, 'BTC') + renderAnalysis(analyses.eth, 'ETH'),
        }[state.tab]();
    }

    function showStatus(message, type) {
        const status = document.getElementById('status');
        status.innerHTML = `<div class="status ${type}">${escapeHtml(message)}</div>`;
        setTimeout(() => { status.innerHTML = ''; }, 5000);
    }

    async function fetchDashboard() {
        const runId = ++state.runId;
        state.loading = true;
        render();
        try {
            const response = await fetch('/dashboard-data');
            const body = await response.json().catch(() => ({}));
            if (!response.ok) {
                throw new Error(body.error || `Request failed with status ${response.status}`);
            }
            if (runId !== state.runId) return;
            state.data = body;
            state.error = null;
        } catch (err) {
            if (runId !== state.runId) return;
            state.error = err.message;
        } finally {
            if (runId === state.runId) {
                state.loading = false;
                render();
            }
        }
    }

    async function fetchSourceNews() {
        const select = document.getElementById('feed-select');
        const results = document.getElementById('feed-results');
        const runId = ++state.feedRunId;
        if (!select.value) {
            results.innerHTML = '';
            return;
        }
        const title = escapeHtml(select.options[select.selectedIndex].text);
        results.innerHTML = '<p class="loader">Loading...</p>';
        try {
            const response = await fetch(`/news?source=${encodeURIComponent(select.value)}`);
            const body = await response.json().catch(() => ({}));
            if (!response.ok) throw new Error(body.error || `Request failed with status ${response.status}`);
            if (runId !== state.feedRunId) return;
            results.innerHTML = renderNews(title, body);
        } catch (err) {
            if (runId !== state.feedRunId) return;
            results.innerHTML = `<p class="unavailable">${escapeHtml(err.message)}</p>`;
        }
    }

    async function pushDigest() {
        if (!state.data) return;
        document.getElementById('push-button').disabled = true;
        try {
            const response = await fetch('/push-digest', {
                method: 'POST',
                headers: { 'Content-Type': 'application/json' },
                body: JSON.stringify(state.data),
            });
            const body = await response.json().catch(() => ({}));
            if (!response.ok) throw new Error(body.error || 'Failed to push to Discord');
            showStatus('Sent to Discord!', 'success');
        } catch (err) {
            showStatus(`Push failed: ${err.message}`, 'error');
        } finally {
            render();
        }
    }

    document.querySelectorAll('.tab-button').forEach((button) => {
        button.addEventListener('click', () => { state.tab = button.dataset.tab; render(); });
    });
    document.getElementById('refresh-button').addEventListener('click', fetchDashboard);
    document.getElementById('push-button').addEventListener('click', pushDigest);
    document.getElementById('feed-select').addEventListener('change', fetchSourceNews);

    window.addEventListener('load', () => {
        fetchDashboard();
        refreshTimer = setInterval(fetchDashboard, REFRESH_MS);
    });
    window.addEventListener('beforeunload', () => {
        if (refreshTimer) clearInterval(refreshTimer);
        refreshTimer = null;
    });
    </script>
</body>
</html>
"""


def _source_options() -> str:
    return "\n".join(
        f'            <option value="{escape(source.key)}">{escape(source.name)}</option>'
        for source in SOURCES.values()
    )


def render_dashboard_page(refresh_minutes: float = 5.0) -> str:
    """Render the dashboard HTML with the auto-refresh interval and news sources filled in."""
    return (
        PAGE_TEMPLATE
        .replace("__REFRESH_MS__", str(int(refresh_minutes * 60 * 1000)))
        .replace("__SOURCE_OPTIONS__", _source_options())
    )
