"""
Fetch timetable payloads from a ZhengFang portal via Selenium browser automation.

Workflow:
1. Open Chrome on the portal → user logs in and opens "学生课表查询"
2. User presses Enter in the terminal
3. Payloads are read from the open page on demand:
   - script_json(): run EXTRACTION_JS against the page DOM
   - page_html():   the rendered page source
   - api_json():    POST the timetable API with the browser's session
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

log = logging.getLogger(__name__)

DEFAULT_PORTAL_URL = "https://ijw.hzcu.edu.cn/jwglxt/"

# Personal timetable API, relative to the portal origin
KB_API_PATH = "/jwglxt/kbcx/xskbcx_cxXsgrkb.html?gnmkdm=N253508"

# Reads the grid view (table#kbgrid_table_0), falling back to the list view,
# and returns {"courses": [...], "totalSections": N} as a JSON string.
EXTRACTION_JS = r"""
return (function () {
    function text(el) { return el ? el.innerText.trim() : ''; }
    function courseName(con) {
        return text(con.querySelector('.title font') || con.querySelector('.title'));
    }
    function stripCampus(room) { return room.replace(/浙大城市学院\s*/, '').trim(); }

    var courses = [];
    var totalSections = 0;
    var table = document.getElementById('kbgrid_table_0');

    if (table) {
        var cells = table.querySelectorAll('td.td_wrap');
        cells.forEach(function (cell) {
            var parts = (cell.getAttribute('id') || '').split('-');
            if (parts.length !== 2) return;
            var day = parseInt(parts[0], 10);
            var section = parseInt(parts[1], 10);
            if (isNaN(day) || isNaN(section)) return;
            if (section > totalSections) totalSections = section;

            cell.querySelectorAll('.timetable_con').forEach(function (con) {
                var name = courseName(con);
                if (!name) return;
                var start = section, end = section, weeks = '';
                var room = '', teacher = '';
                con.querySelectorAll('p').forEach(function (p) {
                    if (p.querySelector('[title="节/周"]')) {
                        var t = text(p);
                        var m = t.match(/\((\d+)-(\d+)节\)/);
                        if (m) { start = parseInt(m[1], 10); end = parseInt(m[2], 10); }
                        weeks = t.replace(/\(\d+-\d+节\)/, '').trim();
                    } else if (p.querySelector('[title="上课地点"]')) {
                        room = stripCampus(text(p));
                    } else if (p.querySelector('[title*="教师"]')) {
                        teacher = text(p);
                    }
                });
                courses.push({name: name, teacher: teacher, classroom: room, weeks: weeks,
                              dayOfWeek: day, startSection: start, endSection: end});
            });
        });
    }

    if (courses.length === 0) {
        document.querySelectorAll('tbody[id^="xq_"]').forEach(function (tbody) {
            var day = parseInt(tbody.getAttribute('id').replace('xq_', ''), 10);
            tbody.querySelectorAll('tr').forEach(function (row) {
                var jc = row.querySelector('td[id^="jc_"]');
                var con = row.querySelector('.timetable_con');
                if (!jc || !con) return;
                var jcParts = jc.getAttribute('id').replace('jc_', '').split('-');
                if (jcParts.length < 3) return;
                var name = courseName(con);
                if (!name) return;
                var body = text(con);
                function field(label) {
                    var m = body.match(new RegExp(label + '\\s*[：:]\\s*([^\\n]*)'));
                    return m ? m[1].trim() : '';
                }
                courses.push({name: name, teacher: field('教师'),
                              classroom: stripCampus(field('上课地点')), weeks: field('周数'),
                              dayOfWeek: day, startSection: parseInt(jcParts[1], 10),
                              endSection: parseInt(jcParts[2], 10)});
            });
        });
    }

    return JSON.stringify({courses: courses, totalSections: totalSections});
})();
"""

_API_FETCH_JS = r"""
var done = arguments[arguments.length - 1];
fetch(arguments[0], {
    method: 'POST',
    credentials: 'include',
    headers: {'Content-Type': 'application/x-www-form-urlencoded'},
    body: arguments[1]
}).then(function (r) { return r.text(); })
  .then(function (t) { done(t); })
  .catch(function () { done(null); });
"""


def term_params(today: date) -> Dict[str, str]:
    """
    Academic year (xnm) and term (xqm) codes for the API request.

    The academic year starts in September; xqm is "3" for the autumn term
    and "12" for the spring term (February-July).
    """
    xnm = today.year if today.month >= 9 else today.year - 1
    xqm = "12" if 2 <= today.month <= 7 else "3"
    return {"xnm": str(xnm), "xqm": xqm}


def _create_driver() -> webdriver.Chrome:
    """Create a Chrome WebDriver instance."""
    options = Options()
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--window-size=1200,900")
    try:
        service = Service(ChromeDriverManager().install())
        return webdriver.Chrome(service=service, options=options)
    except Exception as e:
        raise RuntimeError(
            f"Could not start Chrome. Install Chrome and run again.\nError: {e}"
        ) from e


class PortalSession:
    """
    A browser window logged into the portal.

    Use as a context manager; the browser is closed on exit.
    """

    def __init__(self, url: str = DEFAULT_PORTAL_URL, today: date | None = None):
        self.url = url
        self.today = today or date.today()
        self.driver: Optional[webdriver.Chrome] = None

    def __enter__(self) -> "PortalSession":
        self.driver = _create_driver()
        return self

    def __exit__(self, *exc) -> None:
        if self.driver is not None:
            self.driver.quit()
            self.driver = None

    def open(self, prompt: bool = True) -> None:
        """Open the portal and wait until the user has reached the timetable page."""
        self.driver.get(self.url)
        if prompt:
            print()
            print("In the browser window:")
            print("  1. Log in to the academic portal")
            print("  2. Open the student timetable page (学生课表查询) and select the term")
            print("  3. Wait until the timetable has loaded")
            print("  4. Come back to this terminal and press Enter")
            print()
            input("Press Enter when the timetable is shown → ")

    def script_json(self) -> Optional[str]:
        try:
            result = self.driver.execute_script(EXTRACTION_JS)
        except WebDriverException as e:
            log.warning("Extraction script failed: %s", e)
            return None
        return result if isinstance(result, str) else None

    def page_html(self) -> Optional[str]:
        try:
            return self.driver.page_source
        except WebDriverException as e:
            log.warning("Could not read page source: %s", e)
            return None

    def api_json(self) -> Optional[str]:
        params = term_params(self.today)
        body = f"xnm={params['xnm']}&xqm={params['xqm']}"
        try:
            self.driver.set_script_timeout(30)
            result = self.driver.execute_async_script(_API_FETCH_JS, KB_API_PATH, body)
        except WebDriverException as e:
            log.warning("Timetable API request failed: %s", e)
            return None
        return result if isinstance(result, str) else None
