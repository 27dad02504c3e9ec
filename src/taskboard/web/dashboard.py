"""Dashboard HTML with inline CSS and vanilla JS."""


def get_dashboard_html() -> str:
    return """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Taskboard</title>
<style>
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #e6edf3; --text-muted: #8b949e; --text-dim: #6e7681;
    --pending: #8b949e; --inprogress: #58a6ff; --completed: #3fb950; --risk: #f85149;
    --accent: #58a6ff;
  }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
         background: var(--bg); color: var(--text); line-height: 1.5; }
  .container { max-width: 1100px; margin: 0 auto; padding: 24px 16px; }

  header { display: flex; justify-content: space-between; align-items: center;
           padding-bottom: 16px; border-bottom: 1px solid var(--border); margin-bottom: 24px; }
  header h1 { font-size: 20px; font-weight: 600; }
  select, input, button { background: var(--surface); color: var(--text); border: 1px solid var(--border);
                          padding: 6px 10px; border-radius: 6px; font-size: 13px; }
  button { cursor: pointer; }
  button:hover { border-color: var(--text-muted); }
  button.primary { background: var(--accent); color: #0d1117; border-color: var(--accent); font-weight: 600; }

  .grid { display: grid; grid-template-columns: 2fr 1fr; gap: 20px; }
  .panel { background: var(--surface); border: 1px solid var(--border); border-radius: 8px;
           padding: 16px; margin-bottom: 20px; }
  .panel h2 { font-size: 15px; margin-bottom: 12px; }

  .summary { display: flex; gap: 16px; align-items: center; flex-wrap: wrap; }
  .stat { display: flex; align-items: center; gap: 6px; font-size: 14px; }
  .dot { width: 10px; height: 10px; border-radius: 50%; display: inline-block; }
  .dot.Pending { background: var(--pending); }
  .dot.InProgress { background: var(--inprogress); }
  .dot.Completed { background: var(--completed); }
  .dot.risk { background: var(--risk); }
  .progress-bar { flex: 1; min-width: 120px; height: 8px; background: var(--bg);
                  border-radius: 4px; overflow: hidden; border: 1px solid var(--border); }
  .progress-bar .fill { height: 100%; background: var(--completed); transition: width 0.3s; }

  form.create { display: grid; grid-template-columns: 1fr 1fr 140px auto; gap: 8px; }

  .task-card { border: 1px solid var(--border); border-radius: 8px; padding: 10px 14px; margin-bottom: 6px; }
  .task-card.risk { border-left: 3px solid var(--risk); }
  .task-header { display: flex; align-items: center; gap: 10px; }
  .badge { display: inline-block; padding: 2px 10px; border-radius: 12px; font-size: 11px;
           font-weight: 600; text-transform: uppercase; letter-spacing: 0.5px; }
  .badge.Pending { background: rgba(139,148,158,0.15); color: var(--pending); }
  .badge.InProgress { background: rgba(88,166,255,0.15); color: var(--inprogress); }
  .badge.Completed { background: rgba(63,185,80,0.15); color: var(--completed); }
  .badge.risk { background: rgba(248,81,73,0.15); color: var(--risk); }
  .task-title { font-weight: 600; font-size: 14px; flex: 1; }
  .task-meta { margin-top: 4px; font-size: 12px; color: var(--text-muted); display: flex; gap: 12px;
               align-items: center; }
  .task-meta input[type=range] { width: 140px; }

  .team { margin-bottom: 12px; }
  .team h3 { font-size: 13px; }
  .skills { font-size: 11px; color: var(--text-dim); margin-bottom: 4px; }
  .member { display: flex; align-items: center; gap: 8px; font-size: 12px; color: var(--text-muted); }
  .member .bar { height: 6px; background: var(--inprogress); border-radius: 3px; }

  .log { font-size: 12px; border-bottom: 1px solid var(--border); padding: 6px 0; }
  .log .agent { font-weight: 600; color: var(--accent); margin-right: 6px; }
  .log .time { color: var(--text-dim); font-size: 11px; }

  .empty { text-align: center; padding: 24px; color: var(--text-muted); font-size: 13px; }
  .error { color: var(--risk); font-size: 13px; margin-top: 8px; }
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Taskboard</h1>
    <div>
      <select id="user-picker"><option value="">All tasks</option></select>
      <button class="primary" onclick="runHealthCheck()">Run health check</button>
    </div>
  </header>

  <div class="panel"><div id="summary" class="summary"></div></div>

  <div class="grid">
    <div>
      <div class="panel">
        <h2>New task</h2>
        <form class="create" onsubmit="createTask(event)">
          <input id="new-title" placeholder="Title" required>
          <input id="new-description" placeholder="Description">
          <input id="new-deadline" type="date" required>
          <button class="primary" type="submit">Create</button>
        </form>
        <div id="create-error" class="error"></div>
      </div>
      <div class="panel">
        <h2>Tasks</h2>
        <div id="tasks"></div>
      </div>
    </div>
    <div>
      <div class="panel"><h2>Teams &amp; workloads</h2><div id="teams"></div></div>
      <div class="panel"><h2>Agent activity</h2><div id="logs"></div></div>
    </div>
  </div>
</div>

<script>
let users = [];
let teams = [];
let refreshTimer = null;

async function fetchJSON(path, options) {
  const res = await fetch(path, options);
  const body = await res.json().catch(() => null);
  if (!res.ok) throw new Error((body && body.error) || res.statusText);
  return body;
}

function postJSON(path, data) {
  return fetchJSON(path, {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(data || {}),
  });
}

function userQuery() {
  const uid = document.getElementById('user-picker').value;
  return uid ? `?user_id=${uid}` : '';
}

function userName(id) {
  const u = users.find(u => u.id === id);
  return u ? u.name : (id ? `User ${id}` : 'unassigned');
}

function teamName(id) {
  const t = teams.find(t => t.id === id);
  return t ? t.name : '-';
}

async function loadUsers() {
  users = await fetchJSON('/api/users');
  const picker = document.getElementById('user-picker');
  picker.innerHTML = '<option value="">All tasks</option>' +
    users.map(u => `<option value="${u.id}">${esc(u.name)} (${esc(u.role)})</option>`).join('');
  picker.addEventListener('change', loadDashboard);
}

async function loadDashboard() {
  const q = userQuery();
  const [summary, tasks, teamData, logs] = await Promise.all([
    fetchJSON('/api/summary' + q),
    fetchJSON('/api/tasks' + q),
    fetchJSON('/api/teams'),
    fetchJSON('/api/logs'),
  ]);
  teams = teamData;
  renderSummary(summary);
  renderTasks(tasks);
  renderTeams(teamData);
  renderLogs(logs);
}

function renderSummary(s) {
  const c = s.counts;
  document.getElementById('summary').innerHTML = `
    <span class="stat"><span class="dot Pending"></span> ${c.Pending} pending</span>
    <span class="stat"><span class="dot InProgress"></span> ${c.InProgress} in progress</span>
    <span class="stat"><span class="dot Completed"></span> ${c.Completed} completed</span>
    <span class="stat"><span class="dot risk"></span> ${s.flagged} at risk</span>
    <div class="progress-bar"><div class="fill" style="width:${s.completed_pct}%"></div></div>
    <span class="stat">${s.completed_pct}%</span>`;
}

function renderTasks(tasks) {
  const el = document.getElementById('tasks');
  if (!tasks.length) { el.innerHTML = '<div class="empty">No tasks yet</div>'; return; }
  el.innerHTML = tasks.map(t => `
    <div class="task-card ${t.overload_flag ? 'risk' : ''}">
      <div class="task-header">
        <span class="badge ${t.status}">${t.status}</span>
        ${t.overload_flag ? '<span class="badge risk">at risk</span>' : ''}
        <span class="task-title">${esc(t.title)}</span>
        <span class="time">#${t.id}</span>
      </div>
      <div class="task-meta">
        <span>${esc(teamName(t.assigned_team_id))}</span>
        <span>${esc(userName(t.assigned_member_id))}</span>
        <span>due ${t.deadline}</span>
        <input type="range" min="0" max="100" step="10" value="${t.progress}"
               onchange="updateProgress(${t.id}, this.value)">
        <span>${t.progress}%</span>
      </div>
    </div>`).join('');
}

function renderTeams(teamData) {
  const el = document.getElementById('teams');
  if (!teamData.length) { el.innerHTML = '<div class="empty">No teams</div>'; return; }
  el.innerHTML = teamData.map(t => `
    <div class="team">
      <h3>${esc(t.name)}</h3>
      <div class="skills">${t.skills.map(esc).join(' · ')}</div>
      ${t.members.map(m => `
        <div class="member">
          <span>${esc(userName(m.member_id))}</span>
          <div class="bar" style="width:${Math.min(m.workload, 10) * 10}px"></div>
          <span>${m.workload}</span>
        </div>`).join('') || '<div class="skills">no members</div>'}
    </div>`).join('');
}

function renderLogs(logs) {
  const el = document.getElementById('logs');
  if (!logs.length) { el.innerHTML = '<div class="empty">No agent activity yet</div>'; return; }
  el.innerHTML = logs.slice(0, 30).map(l => `
    <div class="log">
      <span class="agent">${esc(l.agent_name)}</span>#${l.task_id} ${esc(l.action)}
      <div class="time">${new Date(l.timestamp).toLocaleString()}</div>
    </div>`).join('');
}

async function createTask(ev) {
  ev.preventDefault();
  const err = document.getElementById('create-error');
  err.textContent = '';
  try {
    await postJSON('/api/tasks', {
      title: document.getElementById('new-title').value,
      description: document.getElementById('new-description').value,
      deadline: document.getElementById('new-deadline').value,
    });
    ev.target.reset();
    loadDashboard();
  } catch (e) {
    err.textContent = e.message;
  }
}

async function updateProgress(taskId, value) {
  await postJSON(`/api/tasks/${taskId}/progress`, {progress: parseInt(value, 10)});
  loadDashboard();
}

async function runHealthCheck() {
  await postJSON('/api/health-check');
  loadDashboard();
}

function esc(s) {
  if (!s) return '';
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

// Auto-refresh every 30s
function startAutoRefresh() {
  if (refreshTimer) clearInterval(refreshTimer);
  refreshTimer = setInterval(loadDashboard, 30000);
}

loadUsers().then(loadDashboard);
startAutoRefresh();
</script>
</body>
</html>"""
