# scripts/replay.py - replay a CSV of texts against /api/summarize and report cache hits
import argparse, csv, time, requests

def replay(csv_file: str, base_url: str, rate: float | None, origin: str | None, dry_run: bool):
    url = base_url.rstrip("/") + "/api/summarize"
    headers = {"Origin": origin} if origin else {}
    sent = ok = fail = cached = 0

    def post_row(row):
        nonlocal ok, fail, cached
        payload = {"text": row["text"]}
        if row.get("page_path"):
            payload["pagePath"] = row["page_path"]
        if dry_run:
            return True
        try:
            r = requests.post(url, json=payload, headers=headers, timeout=120)
            if r.status_code == 200:
                ok += 1
                if r.json().get("cached"):
                    cached += 1
                return True
            else:
                fail += 1
                print("POST failed:", r.status_code, r.text[:200])
                return False
        except requests.RequestException as e:
            fail += 1
            print("POST error:", e)
            return False

    with open(csv_file, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            sent += 1
            post_row(row)
            if rate and rate > 0:
                time.sleep(1.0 / rate)

    hit_ratio = (100.0 * cached / ok) if ok else 0.0
    print(f"Done. Sent={sent} OK={ok} Fail={fail} Cached={cached} HitRatio={hit_ratio:.1f}%")
    return {"sent": sent, "ok": ok, "fail": fail, "cached": cached, "hit_ratio_pct": round(hit_ratio, 2)}

if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Replay CSV (text,page_path) into /api/summarize")
    ap.add_argument("--file", required=True, help="path to CSV with a 'text' column and optional 'page_path'")
    ap.add_argument("--base", default="http://127.0.0.1:8000", help="API base URL")
    ap.add_argument("--rate", type=float, default=2.0, help="requests per second; 0 to go as fast as possible")
    ap.add_argument("--origin", default=None, help="send this Origin header (browser-style call)")
    ap.add_argument("--dry-run", action="store_true")
    args = ap.parse_args()
    if args.rate == 0:
        args.rate = None
    replay(args.file, args.base, args.rate, args.origin, args.dry_run)
