# splitdfs

splitdfs is a small distributed file store. Clients talk only to a primary
server. The primary keeps `.c` files itself and hands other file types on
to backend servers, one backend per type:

| Extension | Kept by        | Port |
|-----------|----------------|------|
| `.c`      | primary (`S1`) | 1221 |
| `.pdf`    | backend `S2`   | 1202 |
| `.txt`    | backend `S3`   | 1203 |
| `.zip`    | backend `S4`   | 1206 |

Each server keeps its files under a folder in your home directory
(`$HOME/S1`, `$HOME/S2`, `$HOME/S3`, `$HOME/S4`). A client refers to
locations with the `~S1` prefix. The primary rewrites that prefix to `~S2`,
`~S3` or `~S4` for the backend that holds the file.

The package uses only the Python standard library.

## Installation

```
pip install .
```

## Running the servers

Start each backend in its own terminal, then the primary:

```
splitdfs-backend S2
splitdfs-backend S3
splitdfs-backend S4
splitdfs-primary
```

`splitdfs-backend` takes the server name (`S2`, `S3` or `S4`, in any case)
and `--host` for the address to bind. By default it binds all interfaces.
A backend handles one request per connection, one connection at a time.

`splitdfs-primary` takes `--port` (default 1221) and `--backend-host`, the
address at which it reaches the backends (default `127.0.0.1`). It serves
each client in its own thread.

## Using the client

```
splitdfs-client
```

The client connects to `--host` (default `127.0.0.1`) on `--port` (default
1221) and shows a `w25clients$` prompt. It reads commands until `exit` or
end of input:

- `uploadf <file> <~S1/dest/path>` uploads a file from the current
  directory. The primary keeps it or forwards it, based on its extension.
- `downlf <~S1/path/file>` downloads a file into the current directory,
  under its base name.
- `removef <~S1/path/file>` deletes a file from the server that holds it.
- `downltar <.c|.pdf|.txt>` downloads a tar archive of every stored file of
  that type, saved as `cfiles.tar`, `pdf.tar` or `text.tar`.
- `dispfnames <~S1/path>` lists the `.c`, `.pdf`, `.txt` and `.zip` files
  in a folder, gathered from every server and sorted by name. The folder
  must exist under `$HOME/S1` on the primary.
- `exit` leaves the client.

Example session:

```
w25clients$ uploadf notes.txt ~S1/course/week1
Your file has been uploaded successfully.
w25clients$ dispfnames ~S1/course/week1
Files in ~S1/course/week1:
notes.txt
w25clients$ downltar .txt
Successfully downloaded text.tar containing all .txt files.
```

Archives are built in Python with `tarfile`. Each member is named by the
file's full path with the leading slash removed.

## Using it from Python

- `splitdfs.primary.PrimaryServer(home, host, backends)` is the primary.
  `serve_forever(port)` runs it. `dispatch(conn, request)` runs a single
  command against a connected socket.
- `splitdfs.servers.build_server(name, home)` returns a
  `splitdfs.secondary.SecondaryServer` for `S2`, `S3` or `S4`.
  `config_for(name)` returns its `SecondaryConfig`.
- `splitdfs.client.Client(sock, workdir, out)` provides `upload_file`,
  `download_file`, `remove_file`, `download_tar`, `display_filenames` and
  `execute(line)` over an open socket.
- `splitdfs.routing` maps extensions to `Backend` entries
  (`backend_for_extension`) and rewrites `~S1` paths for them
  (`forwarded_path`).

## What it does not do

- `downltar` supports only `.c`, `.pdf` and `.txt`. The `S4` backend does
  not serve archives of `.zip` files.
- An upload with an extension outside the table is kept on the primary
  under `$HOME/S1`. The primary does not forward it and replies
  `Unsupported file type.`
- Replies are not framed. A downloaded file or archive that starts with `E`
  and is shorter than 4096 bytes is taken for an error message and
  discarded.
- The servers have no authentication and no encryption. Run them only on a
  trusted network.