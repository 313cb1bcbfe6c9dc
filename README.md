# mediascribe

Upload audio and video files in chunks, send them off for speech
transcription, follow the transcription jobs, and ask a text-generation
endpoint for a summary of each transcript.

The package has two halves:

- a backend library (`mediascribe.uploads`, `mediascribe.users`,
  `mediascribe.user_usecases`) that manages per-caller upload sessions,
  assembles files from their chunks, starts transcription and summary jobs,
  and logs users in and out with expiring sessions;
- a transcription server (`mediascribe.server`) that receives file chunks
  over HTTP, joins them, pulls mono 16 kHz audio out with `ffmpeg`, and runs
  a speech recognizer over it as a background job.

## Installation

```
pip install mediascribe
```

The server calls two external programs, which must be on your `PATH`:
`ffmpeg` for audio extraction and a whisper command-line recognizer
(`whisper-cli` by default) that accepts `-m <model> -f <wav> -l <lang> -t
<threads> -nt` and prints the recognized text.

## Running the transcription server

```
mediascribe-server
```

Options:

| Option          | Default                                          | Meaning                          |
|-----------------|--------------------------------------------------|----------------------------------|
| `--host`        | `0.0.0.0`                                        | address to listen on             |
| `--port`        | `3000`                                           | port to listen on                |
| `--uploads`     | `uploads`                                        | directory for uploaded chunks    |
| `--model`       | `src/transcribe/assets/models/ggml-base.en.bin`  | speech model file                |
| `--whisper-cli` | `whisper-cli`                                    | speech recognizer program        |

Routes:

| Method | Path               | Purpose                                                          |
|--------|--------------------|------------------------------------------------------------------|
| POST   | `/upload_chunk`    | multipart form with `session_id`, `chunk_index` and `file`       |
| POST   | `/finalize_upload` | JSON `{"session_id": ...}`; answers `{"message": "Job started with ID: <id>"}` |
| GET    | `/status/{job_id}` | `{"status": "Pending"}`, or `Completed`/`Failed` with `data`     |
| GET    | `/result/{job_id}` | `{"text": ...}`: the transcript, `Error: ...`, or `Job is still pending.` |

Chunks are written to `<uploads>/<session_id>/chunk_NNNN.part` and joined in
chunk-number order when the upload is finalised. An unknown job id reports
`Failed` with `Job not found`. Every request is limited to 120 seconds.

`create_app(uploads_dir, transcribe)` builds the same application with any
async callable that turns bytes into text, which is handy for embedding or
testing.

## Using the backend library

State lives in a `CanisterState` object; the caller and the clock come from
a `CallContext`. Uploads are limited to 100 MB and to `audio/*` and
`video/*` content types. A typical flow with an `UploadService`:

1. `start_upload(StartUploadRequest(...))` returns a session id.
2. `upload_chunk(UploadChunkRequest(...))` for every chunk index.
3. `complete_upload(session_id)` checks that every chunk arrived and the size
   matches, and returns a file id.
4. `await start_transcription(file_id)` sends the file to the transcription
   server through `TranscriptionClient` and returns the job id.
5. `await get_transcription_status(job_id)` returns a `JobStatus`;
   `await get_transcription_result(job_id)` fetches the result and stores it,
   after which `get_transcription(file_id)` returns it.
6. `await start_summarization(file_id)` asks the model behind `OllamaClient`
   for a summary in the background; `get_summary_result(job_id)` returns it
   once ready.

Operations check that the caller owns the session or file and raise
`UploadError` with a message otherwise.

For users, `UserService` wraps a `UserRepository`. Sessions last three hours;
a second login while a session is still active is refused, and logout clears
the session. The async functions `login`, `logout` and `get_user_id` in
`mediascribe.user_usecases` return pretty-printed JSON with optional `data`
and `message` fields, and turn anonymous callers away from login and logout.

## Limitations

- All backend state is held in memory in `CanisterState`; nothing is written
  to disk or a database, so it is lost when the process ends.
- The backend library has no network front end of its own; it is meant to be
  called from your own code.
- Server job statuses are also kept in memory only.

## Running the tests

```
pip install "mediascribe[test]"
pytest
```